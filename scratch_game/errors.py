"""
Error kinds raised inside the scratch game core
"""


class GameError(Exception):
    """Base class for scratch game errors"""


class StoreUnavailable(GameError):
    """Remote ledger could not be read (network error, bad status or malformed body)"""


class StoreWriteFailed(GameError):
    """Remote ledger rejected or never received an upsert"""


class NoEligiblePrizeConfigured(GameError):
    """Prize catalog is empty or holds no positive amounts"""


class MalformedLocalState(GameError):
    """A local cache entry could not be decoded"""


class LoginInProgress(GameError):
    """A login attempt is already being verified for this session"""


class InvalidLogin(GameError, ValueError):
    """Username or agent code failed validation"""
