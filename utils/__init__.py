"""Utility modules for agy-top."""

from .connection_state import ConnectionState
from .errors import (
    AgyTopError,
    AuthRejected,
    DiscoveryUnavailable,
    LocalApiError,
    MalformedResponse,
    NetworkFailure,
    RemoteApiError,
    ServerNotFound,
    ServerUnreachable,
    describe_tls_error,
    is_tls_error,
)
from .logging import (
    configure_logging,
    create_contextual_logger,
    get_logger,
    log_exception,
    set_correlation_id,
    get_correlation_id,
    clear_correlation_id,
)
from .numbers import to_int, to_number

__all__ = [
    "ConnectionState",
    "AgyTopError",
    "AuthRejected",
    "DiscoveryUnavailable",
    "LocalApiError",
    "MalformedResponse",
    "NetworkFailure",
    "RemoteApiError",
    "ServerNotFound",
    "ServerUnreachable",
    "describe_tls_error",
    "is_tls_error",
    "configure_logging",
    "create_contextual_logger",
    "get_logger",
    "log_exception",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "to_int",
    "to_number",
]
