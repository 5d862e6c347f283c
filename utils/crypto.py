"""Checksum chain helpers for usage submissions.

The secret is derived from the installation id and user id, both held by the
client, so the chain is tamper-evident for casual consistency checks only. It is
not a security boundary.
"""

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional, Union

GENESIS_CHECKSUM = "0" * 64
SECRET_SALT = b"agy-top-v1"

CHECKSUM_FIELDS = ("periodStart", "periodEnd", "inputTokens", "outputTokens", "sessionCount")


def derive_secret(installation_id: str, user_id: Optional[Union[int, str]]) -> str:
    """Derive the per-installation HMAC key; computed on demand, never stored."""
    message = f"{installation_id}:{user_id or 0}".encode("utf-8")
    return hmac.new(SECRET_SALT, message, hashlib.sha256).hexdigest()


def canonical_payload(
    data: Mapping[str, Any], previous_checksum: str, timestamp_ms: int
) -> str:
    """Serialize the checksummed fields, previous link and timestamp in a fixed order."""
    body = {field: data[field] for field in CHECKSUM_FIELDS}
    body["previousChecksum"] = previous_checksum
    body["timestamp"] = timestamp_ms
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def cumulative_checksum(
    secret: str, data: Mapping[str, Any], previous_checksum: str, timestamp_ms: int
) -> str:
    """HMAC-SHA256 over payload, previous checksum and timestamp."""
    payload = canonical_payload(data, previous_checksum, timestamp_ms)
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()

