"""
Error handling helpers
Safe conversions for loosely-typed ledger rows and a logging context manager
for collaborator boundaries
"""

import logging

logger = logging.getLogger(__name__)

TRUTHY_VALUES = ('true', '1', 'yes', 'on')


def safe_int(value, default=0):
    """
    Safely convert value to integer with fallback

    Numeric strings with a fractional part ("58.0") are accepted.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        int: Converted value or default
    """
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        pass
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def safe_bool(value, default=False):
    """
    Read a boolean from a row field

    Truthy values: True, 'true', '1', 'yes', 'on' (case-insensitive).
    Missing values return the default.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY_VALUES


class log_exceptions:
    """
    Context manager that logs exceptions with custom context

    Usage:
        with log_exceptions("pushing record", username="bob"):
            await store.upsert(record)
    """
    def __init__(self, operation, **context):
        self.operation = operation
        self.context = context

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            context_str = ', '.join(f"{k}={v}" for k, v in self.context.items())
            logger.error(f"Error during {self.operation} [{context_str}]: {exc_val}", exc_info=True)
        return False  # Don't suppress exception
