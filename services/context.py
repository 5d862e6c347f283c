"""Application context for agy-top.

Owns the long-lived collaborators of one CLI invocation and hands them to the
dashboard and commands by reference.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from config import ApplicationConfig, load_config
from utils import create_contextual_logger

from .config_store import ConfigStore
from .leaderboard_client import LeaderboardClient
from .platform_strategies import PlatformStrategy, get_platform_strategy
from .port_prober import PortProber
from .process_locator import ProcessLocator
from .quota_service import QuotaFetcher
from .server_detector import ServerDetector
from .submission_engine import SubmissionEngine
from .token_estimator import TokenEstimator


class AppContext:
    """Process-wide services wired together once at startup."""

    def __init__(
        self,
        config: ApplicationConfig,
        store: ConfigStore,
        http_client: httpx.AsyncClient,
        leaderboard: LeaderboardClient,
        strategy: PlatformStrategy,
        remote_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.http_client = http_client
        self.leaderboard = leaderboard
        self.strategy = strategy
        self._remote_transport = remote_transport
        self.logger = create_contextual_logger(__name__, service="app_context")

        self.locator = ProcessLocator(config, strategy)
        self.prober = PortProber(config, strategy, http_client)
        self.detector = ServerDetector(config, strategy, self.locator, self.prober)
        self.fetcher = QuotaFetcher(config, http_client)
        self.estimator = TokenEstimator.from_state(
            store.get_estimator_state(), reset_jump_threshold=config.reset_jump_threshold
        )
        self.submission_engine = SubmissionEngine(config, store, leaderboard)

    async def reset_leaderboard_client(self) -> LeaderboardClient:
        """Swap in a freshly built client, e.g. after login or logout."""
        previous = self.leaderboard
        client = LeaderboardClient(self.config, self.store, transport=self._remote_transport)
        await client.start()
        self.leaderboard = client
        self.submission_engine.client = client
        await previous.stop()
        self.logger.debug("Leaderboard client replaced", api_url=client.api_url)
        return client

    def save_estimator_state(self) -> None:
        self.store.store_estimator_state(self.estimator.get_state())


@asynccontextmanager
async def open_context(
    config: Optional[ApplicationConfig] = None,
    strategy: Optional[PlatformStrategy] = None,
    local_transport: Optional[httpx.AsyncBaseTransport] = None,
    remote_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[AppContext]:
    """Build an AppContext, start its clients and close them on exit."""
    config = config or load_config()
    store = ConfigStore.from_config(config)
    strategy = strategy or get_platform_strategy(config)

    # Local calls go straight to 127.0.0.1, never through an environment proxy.
    http_client = httpx.AsyncClient(transport=local_transport, trust_env=False)
    leaderboard = LeaderboardClient(config, store, transport=remote_transport)
    context = AppContext(config, store, http_client, leaderboard, strategy, remote_transport)

    try:
        await leaderboard.start()
        yield context
    finally:
        await context.leaderboard.stop()
        await http_client.aclose()
