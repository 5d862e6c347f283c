"""Tests for incremental usage submission and the checksum chain."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
import pytest

from models import (
    GENESIS_CHECKSUM,
    SubmissionCursor,
    SubmissionResponse,
    SubmissionStatus,
    UsageSubmission,
)
from services.submission_engine import (
    AutoSubmitPolicy,
    SubmissionEngine,
    format_iso,
    period_start_for,
    usage_decreased,
)
from services.leaderboard_client import LeaderboardClient
from utils import MalformedResponse, NetworkFailure
from utils.crypto import cumulative_checksum, derive_secret

NOW = datetime(2030, 1, 1, 12, 30, tzinfo=timezone.utc)


class FakeLeaderboard:
    """Records submissions and answers with a canned response or error."""

    def __init__(self, response: Optional[SubmissionResponse] = None, error: Exception = None):
        self.response = response or SubmissionResponse(success=True, trust_score=95, rank=7)
        self.error = error
        self.submissions: List[UsageSubmission] = []

    async def submit_usage(self, submission: UsageSubmission) -> SubmissionResponse:
        self.submissions.append(submission)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def leaderboard() -> FakeLeaderboard:
    return FakeLeaderboard()


@pytest.fixture
def engine(test_config, authenticated_store, leaderboard) -> SubmissionEngine:
    return SubmissionEngine(test_config, authenticated_store, leaderboard)


@pytest.fixture
def snapshot(make_snapshot, make_model):
    return make_snapshot(
        models=[make_model("gemini-3-flash", 80), make_model("claude-sonnet-4-5", 100)],
        prompt=(650000, 1000000),
        flow=(80000, 100000),
    )


class TestHelpers:
    def test_format_iso_uses_milliseconds_and_z(self):
        moment = datetime(2030, 1, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        assert format_iso(moment) == "2030-01-01T12:30:05.123Z"

    def test_period_start_defaults_to_start_of_utc_day(self):
        assert period_start_for(None, NOW) == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_period_start_is_last_cursor(self):
        cursor = SubmissionCursor(timestamp=NOW - timedelta(hours=2), checksum="a" * 64)
        assert period_start_for(cursor, NOW) == NOW - timedelta(hours=2)

    def test_usage_decreased(self, make_snapshot, make_model):
        before = make_snapshot(models=[make_model("gemini-3-flash", 80)], prompt=(500, 1000))

        assert not usage_decreased(None, before)
        assert not usage_decreased(before, before)
        assert usage_decreased(
            before, make_snapshot(models=[make_model("gemini-3-flash", 70)], prompt=(500, 1000))
        )
        assert usage_decreased(
            before, make_snapshot(models=[make_model("gemini-3-flash", 80)], prompt=(400, 1000))
        )
        # A model appearing for the first time is not a decrease.
        assert not usage_decreased(
            before,
            make_snapshot(
                models=[make_model("gemini-3-flash", 80), make_model("claude-x", 10)],
                prompt=(500, 1000),
            ),
        )


class TestAutoSubmitPolicy:
    def test_requires_a_decrease(self):
        assert not AutoSubmitPolicy(300).should_submit(False, None, NOW)

    def test_first_submission_allowed(self):
        assert AutoSubmitPolicy(300).should_submit(True, None, NOW)

    def test_min_interval_enforced(self):
        policy = AutoSubmitPolicy(300)
        recent = SubmissionCursor(timestamp=NOW - timedelta(seconds=120), checksum="a" * 64)
        old = SubmissionCursor(timestamp=NOW - timedelta(seconds=301), checksum="a" * 64)

        assert not policy.should_submit(True, recent, NOW)
        assert policy.should_submit(True, old, NOW)


class TestComputeCurrentUsed:
    def test_credit_estimate_wins_when_larger(self, engine, snapshot):
        assert engine.compute_current_used(snapshot) == (350000, 20000)

    def test_model_estimate_used_without_credits(self, engine, make_snapshot, make_model):
        snapshot = make_snapshot(
            models=[make_model("gemini-3-flash", 80), make_model("claude-sonnet-4-5", 50)]
        )
        # 50_000 * (0.2 + 0.5) = 35_000 split 60/40
        assert engine.compute_current_used(snapshot) == (21000, 14000)

    def test_untouched_models_are_not_active(self, engine, make_snapshot, make_model):
        snapshot = make_snapshot(models=[make_model("gemini-3-flash", 100)])
        assert engine.compute_current_used(snapshot) == (0, 0)


class TestPrepareSubmission:
    def test_first_submission_links_to_genesis(self, engine, snapshot):
        secret = derive_secret("agy-1-test", 42)
        prepared = engine.prepare_submission(snapshot, None, NOW, secret)
        payload = prepared.payload

        assert payload.previous_checksum == GENESIS_CHECKSUM
        assert payload.period_start == "2030-01-01T00:00:00.000Z"
        assert payload.period_end == "2030-01-01T12:30:00.000Z"
        assert payload.input_tokens == 350000
        assert payload.output_tokens == 20000
        assert payload.session_count == 1

        expected = cumulative_checksum(
            secret,
            {
                "periodStart": payload.period_start,
                "periodEnd": payload.period_end,
                "inputTokens": 350000,
                "outputTokens": 20000,
                "sessionCount": 1,
            },
            GENESIS_CHECKSUM,
            int(NOW.timestamp() * 1000),
        )
        assert payload.cumulative_checksum == expected
        assert prepared.next_cursor.checksum == expected
        assert prepared.next_cursor.total_used_input == 350000

    def test_breakdown_only_covers_active_models(self, engine, snapshot):
        prepared = engine.prepare_submission(snapshot, None, NOW, "secret")
        breakdown = prepared.payload.model_breakdown

        assert list(breakdown) == ["gemini-3-flash"]
        assert breakdown["gemini-3-flash"].input_tokens == 350000
        assert breakdown["gemini-3-flash"].sessions == 1

    def test_breakdown_weighted_by_used_percentage(self, engine, make_snapshot, make_model):
        snapshot = make_snapshot(
            models=[make_model("gemini-3-flash", 80), make_model("claude-sonnet-4-5", 40)],
            prompt=(650000, 1000000),
            flow=(80000, 100000),
        )
        breakdown = engine.prepare_submission(snapshot, None, NOW, "secret").payload.model_breakdown

        assert breakdown["gemini-3-flash"].input_tokens == 87500
        assert breakdown["claude-sonnet-4-5"].input_tokens == 262500

    def test_wire_format_is_camel_case(self, engine, snapshot):
        body = engine.prepare_submission(snapshot, None, NOW, "secret").payload.model_dump(
            mode="json", by_alias=True
        )
        assert {"periodStart", "inputTokens", "cumulativeChecksum", "previousChecksum", "clientVersion"} <= set(body)
        assert "inputTokens" in body["modelBreakdown"]["gemini-3-flash"]

    def test_no_increment_is_none(self, engine, snapshot):
        cursor = SubmissionCursor(
            timestamp=NOW - timedelta(hours=1),
            checksum="a" * 64,
            total_used_input=350000,
            total_used_output=20000,
        )
        assert engine.prepare_submission(snapshot, cursor, NOW, "secret") is None

    def test_reset_reports_full_current_value(self, engine, make_snapshot):
        cursor = SubmissionCursor(
            timestamp=NOW - timedelta(hours=1),
            checksum="a" * 64,
            total_used_input=350000,
            total_used_output=20000,
        )
        after_reset = make_snapshot(prompt=(900000, 1000000), flow=(95000, 100000))

        payload = engine.prepare_submission(after_reset, cursor, NOW, "secret").payload

        assert payload.input_tokens == 100000
        assert payload.output_tokens == 5000
        assert payload.previous_checksum == "a" * 64
        assert payload.period_start == "2030-01-01T11:30:00.000Z"

    def test_one_sided_increment_reports_zero_for_other_side(self, engine, make_snapshot):
        cursor = SubmissionCursor(
            timestamp=NOW - timedelta(hours=1),
            checksum="a" * 64,
            total_used_input=300000,
            total_used_output=20000,
        )
        snapshot = make_snapshot(prompt=(650000, 1000000), flow=(80000, 100000))

        payload = engine.prepare_submission(snapshot, cursor, NOW, "secret").payload

        assert payload.input_tokens == 50000
        assert payload.output_tokens == 0


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success_stores_cursor(self, engine, authenticated_store, leaderboard, snapshot):
        result = await engine.submit(snapshot, now=NOW)

        assert result.status == SubmissionStatus.SUBMITTED
        assert result.rank == 7
        assert result.trust_score == 95
        cursor = authenticated_store.get_cursor()
        assert cursor == result.cursor
        assert cursor.timestamp == NOW
        assert cursor.checksum == leaderboard.submissions[0].cumulative_checksum

    @pytest.mark.asyncio
    async def test_same_snapshot_is_idempotent(self, engine, leaderboard, snapshot):
        await engine.submit(snapshot, now=NOW)
        result = await engine.submit(snapshot, now=NOW + timedelta(minutes=10))

        assert result.status == SubmissionStatus.NOTHING_TO_SUBMIT
        assert len(leaderboard.submissions) == 1

    @pytest.mark.asyncio
    async def test_chain_links_successive_submissions(
        self, engine, authenticated_store, leaderboard, snapshot, make_snapshot
    ):
        await engine.submit(snapshot, now=NOW)
        later = NOW + timedelta(hours=1)
        more = make_snapshot(prompt=(600000, 1000000), flow=(80000, 100000))

        result = await engine.submit(more, now=later)

        first, second = leaderboard.submissions
        assert result.status == SubmissionStatus.SUBMITTED
        assert second.previous_checksum == first.cumulative_checksum
        assert second.input_tokens == 50000
        assert second.period_start == format_iso(NOW)
        assert authenticated_store.get_cursor().timestamp == later

    @pytest.mark.asyncio
    async def test_transport_failure_leaves_cursor(self, test_config, authenticated_store, snapshot):
        client = FakeLeaderboard(error=NetworkFailure("connection reset"))
        engine = SubmissionEngine(test_config, authenticated_store, client)

        with pytest.raises(NetworkFailure):
            await engine.submit(snapshot, now=NOW)

        assert authenticated_store.get_cursor() is None

        client.error = None
        retry = await engine.submit(snapshot, now=NOW)
        assert retry.status == SubmissionStatus.SUBMITTED
        assert client.submissions[0].input_tokens == client.submissions[1].input_tokens

    @pytest.mark.asyncio
    async def test_rejection_leaves_cursor(self, test_config, authenticated_store, snapshot):
        client = FakeLeaderboard(
            SubmissionResponse(success=False, trust_score=20, message="Suspicious usage pattern")
        )
        engine = SubmissionEngine(test_config, authenticated_store, client)

        result = await engine.submit(snapshot, now=NOW)

        assert result.status == SubmissionStatus.REJECTED
        assert result.message == "Suspicious usage pattern"
        assert result.trust_score == 20
        assert authenticated_store.get_cursor() is None

    @pytest.mark.asyncio
    async def test_submits_through_leaderboard_client(self, test_config, authenticated_store, snapshot):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"success": True, "trustScore": "90", "rank": 2})

        async with LeaderboardClient(
            test_config, authenticated_store, transport=httpx.MockTransport(handler)
        ) as client:
            result = await SubmissionEngine(test_config, authenticated_store, client).submit(snapshot, now=NOW)

        assert result.status == SubmissionStatus.SUBMITTED
        assert result.rank == 2
        assert requests[0].url.path == "/agy/usage/submit"
        assert authenticated_store.get_cursor() == result.cursor

    @pytest.mark.asyncio
    async def test_malformed_acknowledgement_leaves_cursor(self, test_config, authenticated_store, snapshot):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["ok"]))
        async with LeaderboardClient(test_config, authenticated_store, transport=transport) as client:
            with pytest.raises(MalformedResponse):
                await SubmissionEngine(test_config, authenticated_store, client).submit(snapshot, now=NOW)

        assert authenticated_store.get_cursor() is None
