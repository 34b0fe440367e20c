"""
Play Record Model
One participant's daily game outcome plus the helpers that read it from
loosely-typed sources (ledger rows, cached JSON)
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from utils.error_helpers import safe_bool, safe_int

from . import config
from .errors import InvalidLogin

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def normalize_username(username) -> str:
    """Comparison form of a username (trimmed, lowercased)"""
    return str(username or "").strip().lower()


def game_now() -> datetime:
    return datetime.now(timezone.utc)


def today_string(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    """
    Game day for an instant as YYYY-MM-DD

    Uses GAME_TIMEZONE when configured, otherwise the process local timezone.
    """
    now = now or game_now()
    tz_name = config.GAME_TIMEZONE if tz_name is None else tz_name
    if tz_name:
        local = now.astimezone(ZoneInfo(tz_name))
    else:
        local = now.astimezone()
    return local.strftime("%Y-%m-%d")


def parse_timestamp(value) -> datetime:
    """
    Read a creation instant from a row

    Accepts epoch milliseconds (number or numeric string) and ISO-8601 strings.
    Anything else maps to the epoch so it never wins a tie-break.
    """
    if value is None or isinstance(value, bool):
        return EPOCH
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_millis(value)

    raw = str(value).strip()
    if not raw:
        return EPOCH
    try:
        return _from_millis(float(raw))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _from_millis(value) -> datetime:
    try:
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def normalize_login(username, agent_digits) -> Tuple[str, str]:
    """
    Validate login input

    Returns:
        tuple: (trimmed username, prefixed agent code e.g. "HG07")

    Raises:
        InvalidLogin: empty or malformed username / agent code
    """
    user = str(username or "").strip()
    digits = str(agent_digits or "").strip()

    if not user or not digits:
        raise InvalidLogin("Username and agent code are required")
    if not USERNAME_PATTERN.match(user):
        raise InvalidLogin("Username may only contain letters, digits and underscores")
    if not digits.isdigit() or len(digits) > config.AGENT_MAX_DIGITS:
        raise InvalidLogin(f"Agent code must be 1-{config.AGENT_MAX_DIGITS} digits")

    return user, f"{config.AGENT_PREFIX}{digits}"


@dataclass
class PlayRecord:
    """A participant's game for one game day"""
    username: str
    agent: str
    prize: int
    date: str
    timestamp: datetime = field(default_factory=game_now)
    is_scratched: bool = False
    is_claimed: bool = False
    ip: str = ""

    @property
    def user_key(self) -> str:
        return normalize_username(self.username)

    @property
    def identity(self) -> Tuple[str, str]:
        """(normalized username, date) - the record's identity"""
        return self.user_key, self.date

    def matches(self, username, date: str) -> bool:
        return self.user_key == normalize_username(username) and self.date == date

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or game_now()) - self.timestamp).total_seconds()

    def scratched(self) -> "PlayRecord":
        """Copy of this record with the reveal applied"""
        return replace(self, is_scratched=True)

    @classmethod
    def from_row(cls, row) -> Optional["PlayRecord"]:
        """
        Build a record from a ledger row or cached dict

        Missing or malformed fields default safely (prize -> 0, flags -> False).
        Rows without a username cannot be matched to anyone and return None.
        """
        if not isinstance(row, dict):
            return None
        username = str(row.get("username") or "").strip()
        if not username:
            return None
        return cls(
            username=username,
            agent=str(row.get("agent") or ""),
            prize=safe_int(row.get("prize"), default=0),
            date=str(row.get("date") or "").strip(),
            timestamp=parse_timestamp(row.get("timestamp")),
            is_scratched=safe_bool(row.get("isScratched")),
            is_claimed=safe_bool(row.get("isClaimed")),
            ip=str(row.get("ip") or ""),
        )

    def to_dict(self) -> dict:
        """Cache form (timestamp as epoch milliseconds)"""
        return {
            "username": self.username,
            "agent": self.agent,
            "prize": self.prize,
            "date": self.date,
            "timestamp": int(self.timestamp.timestamp() * 1000),
            "isScratched": self.is_scratched,
            "isClaimed": self.is_claimed,
            "ip": self.ip,
        }

    def to_form(self) -> dict:
        """Ledger upsert form fields"""
        return {
            "action": "save_record",
            "username": self.username,
            "agent": self.agent,
            "prize": str(self.prize),
            "date": self.date,
            "timestamp": self.timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "isScratched": "true" if self.is_scratched else "false",
            "isClaimed": "true" if self.is_claimed else "false",
            "ip": self.ip or "",
        }
