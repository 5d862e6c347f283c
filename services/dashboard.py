"""Dashboard controller for agy-top.

Drives the detect, fetch, estimate and optional auto-submit cycle and keeps the
result in a DashboardState that the renderer draws from.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel

from models import (
    AccumulatedUsage,
    DetectionFailure,
    EstimateResult,
    QuotaSnapshot,
    ServerHandle,
    SubmissionResult,
)
from utils import (
    AgyTopError,
    ConnectionState,
    clear_correlation_id,
    create_contextual_logger,
    log_exception,
    set_correlation_id,
)

from .context import AppContext
from .submission_engine import AutoSubmitPolicy, usage_decreased


class DashboardState(BaseModel):
    """Everything the renderer needs for one frame."""

    handle: Optional[ServerHandle] = None
    snapshot: Optional[QuotaSnapshot] = None
    usage: AccumulatedUsage = AccumulatedUsage()
    last_estimate: Optional[EstimateResult] = None
    error: Optional[str] = None
    tip: Optional[str] = None
    detection_failure: Optional[DetectionFailure] = None
    last_refresh: Optional[datetime] = None
    loading: bool = False
    rank_mode: bool = False
    authenticated: bool = False
    submission: Optional[SubmissionResult] = None
    submission_error: Optional[str] = None


class DashboardController:
    """Single-flight refresh loop over one AppContext."""

    def __init__(self, context: AppContext, rank_mode: bool = False) -> None:
        self.context = context
        self.config = context.config
        self.connection = ConnectionState(max_failures=self.config.max_fetch_failures)
        self.policy = AutoSubmitPolicy(self.config.auto_submit_min_interval)
        self.state = DashboardState(
            usage=context.estimator.snapshot(),
            rank_mode=rank_mode,
            authenticated=context.store.is_authenticated(),
        )
        self._refreshing = False
        self.logger = create_contextual_logger(__name__, service="dashboard")

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    async def refresh(self) -> bool:
        """Run one cycle; returns False if a refresh was already in flight."""
        if self._refreshing:
            self.logger.debug("Refresh already in flight, skipping")
            return False

        self._refreshing = True
        self.state.loading = True
        set_correlation_id()
        try:
            await self._refresh_cycle()
        except Exception as e:
            log_exception(self.logger, e, "Refresh cycle failed")
            self.state.error = str(e) or type(e).__name__
            self.state.tip = None
        finally:
            self.state.loading = False
            self._refreshing = False
            clear_correlation_id()
        return True

    async def _ensure_handle(self) -> Optional[ServerHandle]:
        if self.state.handle is not None:
            return self.state.handle

        result = await self.context.detector.detect()
        if not result.success:
            self.state.error = result.error
            self.state.tip = result.tip
            self.state.detection_failure = result.failure
            return None

        self.state.handle = result.server
        self.state.detection_failure = None
        self.connection.reset()
        return result.server

    async def _refresh_cycle(self) -> None:
        handle = await self._ensure_handle()
        if handle is None:
            return

        try:
            snapshot = await self.context.fetcher.fetch(handle)
        except AgyTopError as e:
            self.state.error = e.message
            self.state.tip = e.tip
            self.connection.mark_failure()
            if self.connection.should_redetect():
                self.state.handle = None
                self.connection.reset()
            return

        self.connection.mark_success()
        previous = self.state.snapshot
        now = datetime.now(timezone.utc)

        self.state.snapshot = snapshot
        self.state.last_estimate = self.context.estimator.update(snapshot.models, snapshot.tier)
        self.state.usage = self.context.estimator.snapshot()
        self.state.error = None
        self.state.tip = None
        self.state.last_refresh = now
        self.state.authenticated = self.context.store.is_authenticated()

        if self.state.rank_mode and self.state.authenticated:
            decreased = usage_decreased(previous, snapshot)
            if self.policy.should_submit(decreased, self.context.store.get_cursor(), now):
                await self._auto_submit(snapshot)

    async def _auto_submit(self, snapshot: QuotaSnapshot) -> None:
        try:
            self.state.submission = await self.context.submission_engine.submit(snapshot)
            self.state.submission_error = None
        except AgyTopError as e:
            self.logger.warning("Auto-submit failed", error=e.message)
            self.state.submission_error = e.message
        except Exception as e:
            log_exception(self.logger, e, "Auto-submit failed unexpectedly")
            self.state.submission_error = str(e) or type(e).__name__

    async def run(
        self,
        interval: float,
        on_update: Callable[[DashboardState], None],
        stop_event: asyncio.Event,
    ) -> None:
        """Refresh every interval seconds until stop_event is set.

        The caller performs the first refresh; this loop only schedules the
        following ones.
        """
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                await self.refresh()
                on_update(self.state)

    def close(self) -> None:
        """Persist estimator history so the next run continues from it."""
        self.context.save_estimator_state()
