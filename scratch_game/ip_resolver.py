"""
Client IP Resolver
Best-effort lookup of the public IP, used only as an anti-abuse signal
"""

import asyncio
import logging

import aiohttp

from . import config

logger = logging.getLogger(__name__)


class IpResolver:
    def __init__(self, lookup_url=config.IP_LOOKUP_URL, timeout=config.IP_LOOKUP_TIMEOUT_SECONDS):
        self.lookup_url = lookup_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def resolve(self) -> str:
        """Public IP address, or '' when it cannot be determined"""
        if not self.lookup_url:
            return ''
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.lookup_url) as response:
                    if response.status != 200:
                        logger.warning(f"IP lookup returned status {response.status}")
                        return ''
                    data = await response.json(content_type=None)
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.warning(f"Failed to get IP: {e}")
            return ''

        if not isinstance(data, dict):
            return ''
        return str(data.get('ip') or '')


class StaticIpResolver:
    """Resolver with a fixed answer (tests, offline CLI runs)"""

    def __init__(self, ip=''):
        self.ip = ip

    async def resolve(self) -> str:
        return self.ip
