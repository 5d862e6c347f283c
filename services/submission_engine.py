"""Submission engine for agy-top.

Computes the usage increment since the last accepted submission, links it into
the checksum chain and sends it to the leaderboard. The persisted cursor only
advances after the server acknowledges success, so a failed attempt can simply
be retried and will recompute the same increment.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config import ApplicationConfig
from models import (
    GENESIS_CHECKSUM,
    ModelBreakdownEntry,
    ModelQuota,
    QuotaSnapshot,
    SubmissionCursor,
    SubmissionResult,
    SubmissionStatus,
    UsageSubmission,
)
from utils import create_contextual_logger
from utils.crypto import cumulative_checksum, derive_secret

from .config_store import ConfigStore
from .leaderboard_client import LeaderboardClient

# A model with any quota used counts as active.
ACTIVE_THRESHOLD = 100.0


def format_iso(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def active_models(models: List[ModelQuota]) -> List[ModelQuota]:
    return [model for model in models if model.remaining_percentage < ACTIVE_THRESHOLD]


def period_start_for(cursor: Optional[SubmissionCursor], now: datetime) -> datetime:
    """Last submission time, or the start of the current UTC day when there is none."""
    if cursor:
        return cursor.timestamp
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def usage_decreased(previous: Optional[QuotaSnapshot], current: QuotaSnapshot) -> bool:
    """Whether any remaining quota or credit pool shrank between two fetches."""
    if previous is None:
        return False

    before = {model.model_id: model.remaining_percentage for model in previous.models}
    for model in current.models:
        if model.model_id in before and model.remaining_percentage < before[model.model_id]:
            return True

    pools = (
        (previous.prompt_credits, current.prompt_credits),
        (previous.flow_credits, current.flow_credits),
    )
    return any(old and new and new.available < old.available for old, new in pools)


def seconds_since(cursor: Optional[SubmissionCursor], now: datetime) -> Optional[float]:
    if cursor is None:
        return None
    return (now - cursor.timestamp).total_seconds()


class AutoSubmitPolicy:
    """Gate for dashboard-driven submissions."""

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval

    def should_submit(
        self, decreased: bool, cursor: Optional[SubmissionCursor], now: datetime
    ) -> bool:
        if not decreased:
            return False
        elapsed = seconds_since(cursor, now)
        return elapsed is None or elapsed >= self.min_interval


class PreparedSubmission(BaseModel):
    """A payload ready to send plus the cursor it becomes once accepted."""

    model_config = ConfigDict(frozen=True)

    payload: UsageSubmission
    next_cursor: SubmissionCursor


class SubmissionEngine:
    """Builds and sends incremental usage submissions, one at a time."""

    def __init__(
        self, config: ApplicationConfig, store: ConfigStore, client: LeaderboardClient
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self._lock = asyncio.Lock()
        self.logger = create_contextual_logger(__name__, service="submission_engine")

    def compute_current_used(self, snapshot: QuotaSnapshot) -> Tuple[int, int]:
        """Current (input, output) usage as the larger of the credit and model estimates."""
        credit_input = max(snapshot.prompt_credits.used, 0.0) if snapshot.prompt_credits else 0.0
        credit_output = max(snapshot.flow_credits.used, 0.0) if snapshot.flow_credits else 0.0

        model_total = sum(
            self.config.tokens_per_exhausted_model * model.used_percentage / 100
            for model in active_models(snapshot.models)
        )
        model_input = model_total * self.config.input_share
        model_output = model_total - model_input

        return round(max(credit_input, model_input)), round(max(credit_output, model_output))

    def _breakdown(
        self, models: List[ModelQuota], input_tokens: int, output_tokens: int
    ) -> Dict[str, ModelBreakdownEntry]:
        # Apportioned by used-percentage weight; per-model increments are not tracked.
        active = active_models(models)
        total_weight = sum(model.used_percentage for model in active)
        if total_weight <= 0:
            return {}

        breakdown: Dict[str, ModelBreakdownEntry] = {}
        for model in active:
            share = model.used_percentage / total_weight
            entry = breakdown.get(model.model_id) or ModelBreakdownEntry()
            breakdown[model.model_id] = ModelBreakdownEntry(
                input_tokens=entry.input_tokens + round(input_tokens * share),
                output_tokens=entry.output_tokens + round(output_tokens * share),
                sessions=1,
            )
        return breakdown

    def prepare_submission(
        self,
        snapshot: QuotaSnapshot,
        cursor: Optional[SubmissionCursor],
        now: datetime,
        secret: str,
    ) -> Optional[PreparedSubmission]:
        """Build the next payload, or None when there is nothing new to report."""
        current_input, current_output = self.compute_current_used(snapshot)
        last_input = cursor.total_used_input if cursor else 0
        last_output = cursor.total_used_output if cursor else 0

        # A negative increment means the allowance was reset; report the whole value.
        input_increment = current_input - last_input
        if input_increment < 0:
            input_increment = current_input
        output_increment = current_output - last_output
        if output_increment < 0:
            output_increment = current_output

        if input_increment <= 0 and output_increment <= 0:
            return None

        previous_checksum = cursor.checksum if cursor else GENESIS_CHECKSUM
        timestamp_ms = int(now.timestamp() * 1000)
        fields = {
            "periodStart": format_iso(period_start_for(cursor, now)),
            "periodEnd": format_iso(now),
            "inputTokens": max(input_increment, 0),
            "outputTokens": max(output_increment, 0),
            "sessionCount": 1,
        }
        checksum = cumulative_checksum(secret, fields, previous_checksum, timestamp_ms)

        payload = UsageSubmission(
            period_start=fields["periodStart"],
            period_end=fields["periodEnd"],
            input_tokens=fields["inputTokens"],
            output_tokens=fields["outputTokens"],
            session_count=fields["sessionCount"],
            model_breakdown=self._breakdown(
                snapshot.models, fields["inputTokens"], fields["outputTokens"]
            ),
            cumulative_checksum=checksum,
            previous_checksum=previous_checksum,
            client_version=self.config.client_version,
        )
        next_cursor = SubmissionCursor(
            timestamp=now,
            checksum=checksum,
            total_used_input=current_input,
            total_used_output=current_output,
        )
        return PreparedSubmission(payload=payload, next_cursor=next_cursor)

    async def submit(
        self, snapshot: QuotaSnapshot, now: Optional[datetime] = None
    ) -> SubmissionResult:
        """Send the increment for this snapshot.

        Only one submission runs at a time. Transport and API errors propagate
        to the caller; in every non-success path the stored cursor is untouched.
        """
        async with self._lock:
            now = now or datetime.now(timezone.utc)
            cursor = self.store.get_cursor()
            secret = derive_secret(self.store.installation_id(), self.store.user_id())

            prepared = self.prepare_submission(snapshot, cursor, now, secret)
            if prepared is None:
                self.logger.debug("Nothing new to submit")
                return SubmissionResult(status=SubmissionStatus.NOTHING_TO_SUBMIT, cursor=cursor)

            payload = prepared.payload
            self.logger.info(
                "Submitting usage",
                input_tokens=payload.input_tokens,
                output_tokens=payload.output_tokens,
                models=len(payload.model_breakdown),
            )
            response = await self.client.submit_usage(payload)

            if not response.success:
                self.logger.warning(
                    "Submission rejected", message=response.message, trust_score=response.trust_score
                )
                return SubmissionResult(
                    status=SubmissionStatus.REJECTED,
                    input_tokens=payload.input_tokens,
                    output_tokens=payload.output_tokens,
                    trust_score=response.trust_score,
                    rank=response.rank,
                    message=response.message,
                    cursor=cursor,
                )

            self.store.store_cursor(prepared.next_cursor)
            return SubmissionResult(
                status=SubmissionStatus.SUBMITTED,
                input_tokens=payload.input_tokens,
                output_tokens=payload.output_tokens,
                trust_score=response.trust_score,
                rank=response.rank,
                message=response.message,
                cursor=prepared.next_cursor,
            )
