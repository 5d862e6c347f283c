"""Leaderboard client service for agy-top.

This module handles all communication with the remote leaderboard API.
"""

import asyncio
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config import ApplicationConfig
from models import (
    LeaderboardData,
    LeaderboardPeriod,
    RankSummary,
    SubmissionResponse,
    UsageHistory,
    UsagePeriod,
    UsageSubmission,
    UserProfile,
)
from utils import (
    AgyTopError,
    AuthRejected,
    MalformedResponse,
    NetworkFailure,
    RemoteApiError,
    create_contextual_logger,
    describe_tls_error,
    get_correlation_id,
    is_tls_error,
)

from .config_store import ConfigStore

LOGIN_TIP = 'Run "agy-top login" to authenticate.'

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class LeaderboardClient:
    """Async client for the leaderboard API.

    One instance owns one httpx.AsyncClient. After an authentication change the
    application context builds a new instance rather than mutating this one.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        store: ConfigStore,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.api_url = (api_url or store.resolve_api_url(config)).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = create_contextual_logger(__name__, service="leaderboard_client")

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=self.config.api_timeout,
            verify=not self.config.insecure_tls,
            transport=self._transport,
        )
        if self.config.insecure_tls:
            self.logger.warning("TLS verification disabled for leaderboard API", api_url=self.api_url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LeaderboardClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def _headers(self, authenticated: bool, correlation_id: Optional[str]) -> Dict[str, str]:
        headers = {
            "User-Agent": f"{self.config.client_name}/{self.config.client_version}",
            "Content-Type": "application/json",
            "X-Client": self.config.client_name,
        }
        if authenticated:
            token = self.store.auth_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        correlation_id = correlation_id or get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        if response.status_code in (401, 403):
            raise AuthRejected(
                f"Authentication rejected by leaderboard ({response.status_code})",
                status_code=response.status_code,
                tip=LOGIN_TIP,
            )
        if response.is_error:
            message = f"Leaderboard request {endpoint} failed with HTTP {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = f"{message}: {body['message']}"
            except ValueError:
                pass
            raise RemoteApiError(message, status_code=response.status_code)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Perform one API call and return its decoded JSON body.

        GET requests are retried on transport errors and 5xx responses. Other
        methods are sent exactly once because the server does not deduplicate.
        """
        await self.start()
        method = method.upper()
        attempts = max(self.config.api_retry_attempts, 1) if method == "GET" else 1
        headers = self._headers(authenticated, correlation_id)

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = await self._client.request(
                    method, endpoint, json=data, params=params, headers=headers
                )
            except httpx.HTTPError as e:
                if is_tls_error(e):
                    raise describe_tls_error(e, self.api_url) from e
                if last_attempt:
                    raise NetworkFailure(f"Leaderboard request {endpoint} failed: {e}") from e
                self.logger.debug("Retrying leaderboard request", endpoint=endpoint, error=str(e))
            else:
                if response.status_code >= 500 and not last_attempt:
                    self.logger.debug(
                        "Retrying leaderboard request",
                        endpoint=endpoint,
                        status_code=response.status_code,
                    )
                else:
                    self._raise_for_status(response, endpoint)
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        raise MalformedResponse(f"Leaderboard response for {endpoint} is not JSON") from e

            await asyncio.sleep(self.config.api_retry_backoff_factor * (2 ** attempt))

        raise NetworkFailure(f"Leaderboard request {endpoint} failed")

    def _path(self, suffix: str) -> str:
        return f"{self.config.leaderboard_prefix}{suffix}"

    def _parse(self, model: Type[ResponseModel], body: Any, endpoint: str) -> ResponseModel:
        """Validate a decoded body, reporting shape errors as MalformedResponse."""
        try:
            return model.model_validate(body if body is not None else {})
        except ValidationError as e:
            self.logger.debug("Unexpected leaderboard response", endpoint=endpoint, errors=e.error_count())
            raise MalformedResponse(
                f"Unexpected leaderboard response for {endpoint}: {e.error_count()} invalid field(s)"
            ) from e

    async def submit_usage(
        self, submission: UsageSubmission, correlation_id: Optional[str] = None
    ) -> SubmissionResponse:
        endpoint = self._path("/usage/submit")
        body = await self._make_request(
            "POST",
            endpoint,
            data=submission.model_dump(mode="json", by_alias=True),
            correlation_id=correlation_id,
        )
        return self._parse(SubmissionResponse, body, endpoint)

    async def get_my_usage(
        self, period: UsagePeriod = UsagePeriod.WEEKLY, limit: int = 30
    ) -> UsageHistory:
        endpoint = self._path("/usage/my")
        body = await self._make_request(
            "GET", endpoint, params={"period": UsagePeriod(period).value, "limit": limit}
        )
        return self._parse(UsageHistory, body, endpoint)

    async def get_leaderboard(
        self, period: LeaderboardPeriod = LeaderboardPeriod.WEEKLY, limit: int = 20
    ) -> LeaderboardData:
        endpoint = self._path("/leaderboard")
        body = await self._make_request(
            "GET",
            endpoint,
            params={"period": LeaderboardPeriod(period).value, "limit": limit},
            authenticated=self.store.is_authenticated(),
        )
        return self._parse(LeaderboardData, body, endpoint)

    async def get_my_rank(self, period: LeaderboardPeriod = LeaderboardPeriod.WEEKLY) -> RankSummary:
        endpoint = self._path("/rank")
        body = await self._make_request(
            "GET", endpoint, params={"period": LeaderboardPeriod(period).value}
        )
        return self._parse(RankSummary, body, endpoint)

    async def get_current_user(self) -> UserProfile:
        """Fetch the authenticated profile; accepts both wrapped and bare shapes."""
        endpoint = self.config.profile_path
        body = await self._make_request("GET", endpoint)
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        if not isinstance(body, dict):
            raise MalformedResponse("Profile response is not an object")
        return self._parse(UserProfile, body, endpoint)

    async def validate_token(self) -> bool:
        if not self.store.is_authenticated():
            return False
        try:
            await self.get_current_user()
        except AgyTopError as e:
            self.logger.debug("Token validation failed", error=str(e))
            return False
        return True

    async def health_check(self) -> bool:
        """Any 2xx from the health endpoint means healthy."""
        try:
            await self._make_request("GET", self._path("/health"), authenticated=False)
        except MalformedResponse:
            return True
        except AgyTopError as e:
            self.logger.debug("Leaderboard health check failed", error=str(e))
            return False
        return True
