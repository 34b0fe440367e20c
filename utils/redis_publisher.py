"""
Redis Publisher for Game Events
Publishes anti-abuse flags and reveal outcomes to Redis channels for the
review dashboard
"""

import json
import logging
import os

import redis

logger = logging.getLogger(__name__)

FLAG_CHANNEL = 'game:flags'
OUTCOME_CHANNEL = 'game:outcomes'


class GameEventPublisher:
    def __init__(self, redis_url=None):
        self.client = None
        self.enabled = False

        redis_url = redis_url if redis_url is not None else os.getenv('REDIS_URL')
        if not redis_url:
            logger.debug("REDIS_URL not set, game events will not be published")
            return

        if '://' not in redis_url:
            redis_url = f'redis://{redis_url}'
        try:
            self.client = redis.from_url(redis_url, decode_responses=True)
            self.client.ping()
            self.enabled = True
            logger.info("✅ Game event publisher connected")
        except redis.RedisError as e:
            logger.warning(f"⚠️ Redis unavailable for game events: {e}")

    def publish(self, channel, action, data=None):
        """Publish an event to a Redis channel"""
        if not self.enabled:
            return False

        try:
            message = json.dumps({
                'action': action,
                'data': data or {}
            })
            self.client.publish(channel, message)
            logger.debug(f"📤 Published to {channel}: {action}")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Failed to publish to {channel}: {e}")
            return False

    def publish_ip_flag(self, username, ip, other_username, date):
        """Same client IP already completed today's game under another username"""
        return self.publish(FLAG_CHANNEL, 'ip_flagged', {
            'username': username,
            'ip': ip,
            'other_username': other_username,
            'date': date
        })

    def publish_reveal(self, username, prize, date):
        return self.publish(OUTCOME_CHANNEL, 'card_revealed', {
            'username': username,
            'prize': prize,
            'date': date
        })

    def publish_push_failed(self, username, date, error):
        return self.publish(OUTCOME_CHANNEL, 'record_push_failed', {
            'username': username,
            'date': date,
            'error': str(error)
        })
