"""Error taxonomy for agy-top.

Every error carries a displayable message and an optional remediation tip.
"""

from typing import Optional

TLS_ERROR_MARKERS = (
    "CERTIFICATE_VERIFY_FAILED",
    "certificate verify failed",
    "self signed certificate",
    "self-signed certificate",
    "unable to get local issuer certificate",
    "certificate has expired",
    "hostname mismatch",
    "SSL:",
)

INSECURE_TLS_FLAG = "AGY_INSECURE_TLS=1"


class AgyTopError(Exception):
    """Base class for all agy-top errors."""

    default_tip: Optional[str] = None

    def __init__(self, message: str, tip: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.tip = tip if tip is not None else self.default_tip

    def __str__(self) -> str:
        return self.message


class DiscoveryUnavailable(AgyTopError):
    """The OS-level process or port enumeration mechanism itself failed."""

    default_tip = "Process listing failed. Check that ps/PowerShell is available and permitted."


class ServerNotFound(AgyTopError):
    """No matching language server process was located."""


class ServerUnreachable(AgyTopError):
    """A process was located but no port answered the verification probe."""

    default_tip = "The server may still be starting up. Try again in a few seconds."


class AuthRejected(AgyTopError):
    """A local or remote endpoint answered 401/403."""

    def __init__(self, message: str, status_code: int, tip: Optional[str] = None) -> None:
        super().__init__(message, tip)
        self.status_code = status_code


class MalformedResponse(AgyTopError):
    """A 2xx response is missing its required structure."""


class NetworkFailure(AgyTopError):
    """Timeout, refused or reset connection, or TLS failure."""


class LocalApiError(AgyTopError):
    """The local language server answered with a non-auth HTTP error."""

    def __init__(self, message: str, status_code: int, tip: Optional[str] = None) -> None:
        super().__init__(message, tip)
        self.status_code = status_code


class RemoteApiError(AgyTopError):
    """The leaderboard service answered with a non-auth HTTP error."""

    def __init__(self, message: str, status_code: int, tip: Optional[str] = None) -> None:
        super().__init__(message, tip)
        self.status_code = status_code


def is_tls_error(exc: BaseException) -> bool:
    """Check an exception and its causes for a known TLS failure marker."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = f"{type(current).__name__}: {current}"
        if any(marker.lower() in text.lower() for marker in TLS_ERROR_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def describe_tls_error(exc: BaseException, api_url: str) -> NetworkFailure:
    """Rewrite a TLS failure into a single actionable diagnostic."""
    return NetworkFailure(
        f"TLS certificate verification failed while connecting to {api_url}",
        tip=(
            "Check the system clock and CA certificates, or the configured API URL. "
            f"For local development only, set {INSECURE_TLS_FLAG} to skip verification."
        ),
    )
