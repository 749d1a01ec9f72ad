"""
Utilities package for the jewelry quote system.
"""

from .logging import (
    get_logger,
    setup_logging,
    log_sync_start,
    log_sync_result,
    log_record_failure,
    log_reconcile_status
)
from .exceptions import (
    QuoteError,
    ValidationError,
    ConfigurationError,
    RepositoryUnavailable,
    AuthenticationError,
    PartialSyncFailure
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_sync_start",
    "log_sync_result",
    "log_record_failure",
    "log_reconcile_status",
    "QuoteError",
    "ValidationError",
    "ConfigurationError",
    "RepositoryUnavailable",
    "AuthenticationError",
    "PartialSyncFailure"
]
