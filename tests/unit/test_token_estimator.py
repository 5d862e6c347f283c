"""Tests for token estimation from quota percentage drops."""

import pytest

from models import ModelCategory
from services.token_estimator import (
    TIER_QUOTAS,
    TokenEstimator,
    categorize_model,
    estimate_tokens_from_delta,
    get_tier_quota_config,
)


class TestCategorizeModel:
    @pytest.mark.parametrize(
        "model_id,category",
        [
            ("gemini-3-flash", ModelCategory.GEMINI_FLASH),
            ("MODEL_PLACEHOLDER_FLASH_LITE", ModelCategory.GEMINI_FLASH),
            ("gemini-3-pro-high", ModelCategory.GEMINI_PRO),
            ("gemini-2.5-something", ModelCategory.GEMINI_PRO),
            ("gemini-exp-1206", ModelCategory.GEMINI_PRO),
            ("claude-sonnet-4-5", ModelCategory.CLAUDE),
            ("anthropic-opus", ModelCategory.CLAUDE),
            ("gemini-nano", ModelCategory.GEMINI_FLASH),
            ("gpt-oss-120b", ModelCategory.UNKNOWN),
        ],
    )
    def test_rules(self, model_id, category):
        assert categorize_model(model_id) == category


class TestTierQuotas:
    def test_exact_match(self):
        assert get_tier_quota_config("Google AI Pro") is TIER_QUOTAS["Google AI Pro"]

    @pytest.mark.parametrize(
        "tier,expected",
        [
            ("ultra plan", "Google AI Ultra"),
            ("Some PRO tier", "Google AI Pro"),
            ("free-tier", "Free"),
            ("enterprise", "default"),
            (None, "default"),
        ],
    )
    def test_fuzzy_fallback(self, tier, expected):
        assert get_tier_quota_config(tier) is TIER_QUOTAS[expected]


class TestEstimateTokensFromDelta:
    def test_drop_scales_by_tier_budget(self):
        assert estimate_tokens_from_delta(80, 60, ModelCategory.GEMINI_FLASH, "Free") == 20000

    def test_rise_is_never_consumption(self):
        assert estimate_tokens_from_delta(60, 70, ModelCategory.GEMINI_FLASH, "Free") == 0

    def test_reset_jump_is_zero(self):
        assert estimate_tokens_from_delta(10, 95, ModelCategory.CLAUDE, "Free") == 0

    def test_unknown_category_uses_flash_budget(self):
        assert estimate_tokens_from_delta(100, 90, ModelCategory.UNKNOWN, "Free") == 10000


class TestTokenEstimator:
    def test_first_sighting_is_zero(self, make_model):
        estimator = TokenEstimator()

        result = estimator.update([make_model("gemini-3-flash", 40)], "Free")

        assert result.tokens_consumed == 0
        assert estimator.snapshot().total == 0

    def test_drop_is_accumulated(self, make_model):
        estimator = TokenEstimator()
        estimator.update([make_model("gemini-3-flash", 80)], "Free")

        result = estimator.update([make_model("gemini-3-flash", 60)], "Free")

        assert result.tokens_consumed == 20000
        assert result.breakdown[ModelCategory.GEMINI_FLASH] == 20000
        usage = estimator.snapshot()
        assert usage.gemini_flash == 20000
        assert usage.total == 20000

    def test_reset_advances_history(self, make_model):
        estimator = TokenEstimator()
        estimator.update([make_model("claude-sonnet-4-5", 10)], "Free")

        result = estimator.update([make_model("claude-sonnet-4-5", 95)], "Free")

        assert result.tokens_consumed == 0
        state = estimator.history()["claude-sonnet-4-5"]
        assert state.previous_percentage == 10
        assert state.current_percentage == 95

        estimator.update([make_model("claude-sonnet-4-5", 85)], "Free")
        assert estimator.snapshot().claude == 3000

    def test_unknown_category_is_reported_but_not_accumulated(self, make_model):
        estimator = TokenEstimator()
        estimator.update([make_model("gpt-oss-120b", 100)], "Free")

        result = estimator.update([make_model("gpt-oss-120b", 90)], "Free")

        assert result.breakdown[ModelCategory.UNKNOWN] == 10000
        assert estimator.snapshot().total == 0

    def test_absent_model_keeps_its_history(self, make_model):
        estimator = TokenEstimator()
        estimator.update([make_model("gemini-3-flash", 80), make_model("claude-x", 50)], "Free")
        estimator.update([make_model("claude-x", 50)], "Free")

        result = estimator.update([make_model("gemini-3-flash", 70)], "Free")

        assert result.tokens_consumed == 10000

    def test_state_round_trip(self, make_model):
        estimator = TokenEstimator()
        estimator.update([make_model("gemini-3-flash", 80)], "Free")
        estimator.update([make_model("gemini-3-flash", 60)], "Free")

        state = estimator.get_state()
        assert state["quotaHistory"][0][0] == "gemini-3-flash"
        assert state["accumulatedUsage"]["geminiFlash"] == 20000

        restored = TokenEstimator.from_state(state)
        assert restored.snapshot().gemini_flash == 20000

        result = restored.update([make_model("gemini-3-flash", 50)], "Free")
        assert result.tokens_consumed == 10000

    def test_from_empty_state(self):
        estimator = TokenEstimator.from_state(None)
        assert estimator.snapshot().total == 0
        assert estimator.history() == {}
