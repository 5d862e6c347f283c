"""Quota snapshot fetcher for agy-top.

Calls the detected language server's user status endpoint and normalizes the
response into a QuotaSnapshot. Numeric fields may arrive string-encoded.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import ApplicationConfig
from models import CreditPool, ModelQuota, QuotaSnapshot, ServerHandle, TokenUsage, UserInfo
from utils import (
    AuthRejected,
    LocalApiError,
    MalformedResponse,
    NetworkFailure,
    create_contextual_logger,
    to_number,
)

from .port_prober import USER_STATUS_BODY, local_api_headers, user_status_url

AUTH_TIP = (
    "The token is tied to the IDE session. Restart the IDE or re-run agy-top "
    "so the server is detected again."
)


def format_time_until(delta_seconds: float) -> str:
    """Render time until reset as Ready, <m>m or <h>h <m>m."""
    if delta_seconds <= 0:
        return "Ready"
    minutes = math.ceil(delta_seconds / 60)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def _parse_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _credit_pool(monthly_raw: Any, available_raw: Any) -> Optional[CreditPool]:
    # Pools without a positive allowance are omitted, never shown as 0%.
    if monthly_raw is None or available_raw is None:
        return None
    monthly = to_number(monthly_raw)
    if monthly <= 0:
        return None
    return CreditPool(available=to_number(available_raw), monthly=monthly)


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value) or None


def _parse_models(raw_models: Any, now: datetime) -> List[ModelQuota]:
    if not isinstance(raw_models, list):
        return []
    models = []
    for raw in raw_models:
        if not isinstance(raw, dict):
            continue
        quota_info = raw.get("quotaInfo")
        if not isinstance(quota_info, dict):
            continue

        fraction = to_number(quota_info.get("remainingFraction"))
        remaining = min(max(fraction * 100, 0.0), 100.0)
        reset_time = _parse_time(quota_info.get("resetTime"))
        delta = (reset_time - now).total_seconds() if reset_time else 0

        model_id = _text(_mapping(raw.get("modelOrAlias")).get("model")) or "unknown"
        models.append(
            ModelQuota(
                label=_text(raw.get("label")) or model_id,
                model_id=model_id,
                remaining_percentage=remaining,
                reset_time=reset_time,
                time_until_reset=format_time_until(delta),
            )
        )
    return models


def parse_user_status(payload: Dict[str, Any], now: Optional[datetime] = None) -> QuotaSnapshot:
    """Normalize a GetUserStatus payload into a snapshot.

    Sections of the wrong shape are treated as absent.

    Raises:
        MalformedResponse: the top-level userStatus object is missing, or the
            payload cannot be turned into a valid snapshot.
    """
    now = now or datetime.now(timezone.utc)
    user_status = payload.get("userStatus") if isinstance(payload, dict) else None
    if not isinstance(user_status, dict):
        raise MalformedResponse("Invalid response structure: missing userStatus")

    try:
        return _build_snapshot(user_status, now)
    except (ValidationError, AttributeError, TypeError) as e:
        first_line = str(e).splitlines()[0] if str(e) else type(e).__name__
        raise MalformedResponse(f"Invalid response structure: {first_line}") from e


def _build_snapshot(user_status: Dict[str, Any], now: datetime) -> QuotaSnapshot:
    plan_status = _mapping(user_status.get("planStatus"))
    plan_info = _mapping(plan_status.get("planInfo"))

    prompt_credits = None
    flow_credits = None
    if plan_info:
        prompt_credits = _credit_pool(
            plan_info.get("monthlyPromptCredits"), plan_status.get("availablePromptCredits")
        )
        flow_credits = _credit_pool(
            plan_info.get("monthlyFlowCredits"), plan_status.get("availableFlowCredits")
        )

    token_usage = None
    if prompt_credits or flow_credits:
        total_available = sum(p.available for p in (prompt_credits, flow_credits) if p)
        total_monthly = sum(p.monthly for p in (prompt_credits, flow_credits) if p)
        token_usage = TokenUsage(
            prompt_credits=prompt_credits,
            flow_credits=flow_credits,
            total_available=total_available,
            total_monthly=total_monthly,
            overall_remaining_percentage=(
                total_available / total_monthly * 100 if total_monthly > 0 else 0
            ),
        )

    user_tier = _mapping(user_status.get("userTier"))
    name = _text(user_status.get("name"))
    user_info = None
    if name or user_tier:
        user_info = UserInfo(
            name=name,
            email=_text(user_status.get("email")),
            tier=_text(user_tier.get("name")) or _text(plan_info.get("teamsTier")),
            plan_name=_text(plan_info.get("planName")),
        )

    model_config_data = _mapping(user_status.get("cascadeModelConfigData"))
    models = _parse_models(model_config_data.get("clientModelConfigs"), now)

    return QuotaSnapshot(
        timestamp=now,
        prompt_credits=prompt_credits,
        flow_credits=flow_credits,
        token_usage=token_usage,
        user_info=user_info,
        models=models,
    )


class QuotaFetcher:
    """Fetches quota snapshots from a verified server handle."""

    def __init__(self, config: ApplicationConfig, http_client: httpx.AsyncClient) -> None:
        self.config = config
        self.http_client = http_client
        self.logger = create_contextual_logger(__name__, service="quota_fetcher")

    async def fetch(self, handle: ServerHandle) -> QuotaSnapshot:
        """Fetch and parse one snapshot.

        Raises:
            AuthRejected: the server answered 401/403.
            LocalApiError: any other non-2xx status.
            MalformedResponse: a 2xx body without the expected structure.
            NetworkFailure: timeout or connection error.
        """
        timeout = self.config.local_fetch_timeout
        try:
            response = await asyncio.wait_for(
                self.http_client.post(
                    user_status_url(self.config, handle.port),
                    json=USER_STATUS_BODY,
                    headers=local_api_headers(self.config, handle.csrf_token),
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"Quota request timed out after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Failed to fetch quota: {e}") from e

        if response.status_code in (401, 403):
            raise AuthRejected(
                f"Authentication failed ({response.status_code})",
                status_code=response.status_code,
                tip=AUTH_TIP,
            )
        if not response.is_success:
            raise LocalApiError(
                f"HTTP error {response.status_code}", status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse("Invalid response structure: body is not JSON") from e

        snapshot = parse_user_status(payload)
        self.logger.debug(
            "Quota snapshot fetched",
            port=handle.port,
            models=len(snapshot.models),
            has_credits=snapshot.token_usage is not None,
        )
        return snapshot
