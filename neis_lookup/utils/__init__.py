"""
Utils Module

Shared utilities, helpers, and common functionality.

Components:
    - logger: Logging with daily rotation and colorized output
    - exceptions: Custom exception classes
    - date_window: YYYYMMDD date window calculation (import directly)
"""

from neis_lookup.utils.exceptions import (
    InvalidInputError,
    NeisLookupError,
    UpstreamError,
)
from neis_lookup.utils.logger import (
    LoggerConfig,
    setup_logger,
)

__all__ = [
    # Exceptions
    "NeisLookupError",
    "InvalidInputError",
    "UpstreamError",
    # Logger utilities
    "LoggerConfig",
    "setup_logger",
]
