"""Token estimator for agy-top.

The language server reports remaining quota percentages, not token counts, so
consumption is estimated from percentage drops scaled by an assumed per-tier
budget. The goal is consistent, explainable numbers rather than exact ones.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from models import AccumulatedUsage, EstimateResult, ModelCategory, ModelQuota, ModelQuotaState
from utils import create_contextual_logger

DEFAULT_RESET_JUMP_THRESHOLD = 50.0

# Assumed tokens per quota window (5 hours for paid tiers, weekly for Free).
TIER_QUOTAS: Dict[str, Dict[ModelCategory, int]] = {
    "Google AI Ultra": {
        ModelCategory.GEMINI_FLASH: 1_000_000,
        ModelCategory.GEMINI_PRO: 500_000,
        ModelCategory.CLAUDE: 300_000,
    },
    "Google AI Pro": {
        ModelCategory.GEMINI_FLASH: 500_000,
        ModelCategory.GEMINI_PRO: 250_000,
        ModelCategory.CLAUDE: 150_000,
    },
    "Free": {
        ModelCategory.GEMINI_FLASH: 100_000,
        ModelCategory.GEMINI_PRO: 50_000,
        ModelCategory.CLAUDE: 30_000,
    },
    "default": {
        ModelCategory.GEMINI_FLASH: 200_000,
        ModelCategory.GEMINI_PRO: 100_000,
        ModelCategory.CLAUDE: 60_000,
    },
}


def categorize_model(model_id: str) -> ModelCategory:
    """Classify a model id with ordered substring rules."""
    lower = model_id.lower()

    if "flash" in lower:
        return ModelCategory.GEMINI_FLASH
    if "gemini" in lower and ("pro" in lower or "2.5" in lower or "exp" in lower):
        return ModelCategory.GEMINI_PRO
    if "claude" in lower or "anthropic" in lower:
        return ModelCategory.CLAUDE
    if "gemini" in lower:
        return ModelCategory.GEMINI_FLASH
    return ModelCategory.UNKNOWN


def get_tier_quota_config(tier: Optional[str]) -> Dict[ModelCategory, int]:
    """Exact tier match, then ultra/pro/free substring match, then the default table."""
    if not tier:
        return TIER_QUOTAS["default"]
    if tier in TIER_QUOTAS:
        return TIER_QUOTAS[tier]

    lower = tier.lower()
    if "ultra" in lower:
        return TIER_QUOTAS["Google AI Ultra"]
    if "pro" in lower:
        return TIER_QUOTAS["Google AI Pro"]
    if "free" in lower:
        return TIER_QUOTAS["Free"]
    return TIER_QUOTAS["default"]


def category_quota(tier: Optional[str], category: ModelCategory) -> int:
    quotas = get_tier_quota_config(tier)
    if category == ModelCategory.UNKNOWN:
        return quotas[ModelCategory.GEMINI_FLASH]
    return quotas[category]


def estimate_tokens_from_delta(
    previous_percentage: float,
    current_percentage: float,
    category: ModelCategory,
    tier: Optional[str],
    reset_jump_threshold: float = DEFAULT_RESET_JUMP_THRESHOLD,
) -> int:
    """Tokens implied by a drop from previous to current remaining percentage.

    A rise is never consumption. A rise beyond the reset threshold is a quota
    reset and is likewise counted as zero.
    """
    if current_percentage >= previous_percentage:
        return 0
    if current_percentage > previous_percentage + reset_jump_threshold:
        return 0

    delta = previous_percentage - current_percentage
    return round(delta / 100 * category_quota(tier, category))


class TokenEstimator:
    """Tracks per-model quota history and accumulates estimated consumption."""

    def __init__(
        self,
        initial_usage: Optional[AccumulatedUsage] = None,
        reset_jump_threshold: float = DEFAULT_RESET_JUMP_THRESHOLD,
    ) -> None:
        self.reset_jump_threshold = reset_jump_threshold
        self._history: Dict[str, ModelQuotaState] = {}
        self._usage = initial_usage.model_copy() if initial_usage else AccumulatedUsage()
        self.logger = create_contextual_logger(__name__, service="token_estimator")

    def update(self, models: Iterable[ModelQuota], tier: Optional[str]) -> EstimateResult:
        """Compare each model against its stored percentage and advance the history."""
        breakdown = {category: 0 for category in ModelCategory}
        total_consumed = 0
        now = datetime.now(timezone.utc)

        for model in models:
            category = categorize_model(model.model_id)
            current = model.remaining_percentage
            state = self._history.get(model.model_id)
            # First sighting means zero consumption, never inferred from absence.
            previous = state.current_percentage if state else current

            consumed = estimate_tokens_from_delta(
                previous, current, category, tier, self.reset_jump_threshold
            )
            if consumed > 0:
                breakdown[category] += consumed
                total_consumed += consumed
                if category != ModelCategory.UNKNOWN:
                    field = category.value
                    setattr(self._usage, field, getattr(self._usage, field) + consumed)
                    self._usage.total += consumed
                    self._usage.last_updated = now

            self._history[model.model_id] = ModelQuotaState(
                model_id=model.model_id,
                category=category,
                previous_percentage=previous,
                current_percentage=current,
                last_updated=now,
            )

        if total_consumed:
            self.logger.debug("Estimated token consumption", tokens=total_consumed, tier=tier)
        return EstimateResult(tokens_consumed=total_consumed, breakdown=breakdown)

    def snapshot(self) -> AccumulatedUsage:
        return self._usage.model_copy()

    def history(self) -> Dict[str, ModelQuotaState]:
        return {key: state.model_copy() for key, state in self._history.items()}

    def get_state(self) -> Dict[str, Any]:
        """Serializable state for persistence."""
        return {
            "quotaHistory": [
                [model_id, state.model_dump(mode="json", by_alias=True)]
                for model_id, state in self._history.items()
            ],
            "accumulatedUsage": self._usage.model_dump(mode="json", by_alias=True),
        }

    @classmethod
    def from_state(
        cls,
        state: Optional[Dict[str, Any]],
        reset_jump_threshold: float = DEFAULT_RESET_JUMP_THRESHOLD,
    ) -> "TokenEstimator":
        state = state or {}
        usage = state.get("accumulatedUsage")
        estimator = cls(
            AccumulatedUsage.model_validate(usage) if usage else None,
            reset_jump_threshold=reset_jump_threshold,
        )
        for model_id, value in state.get("quotaHistory") or []:
            estimator._history[model_id] = ModelQuotaState.model_validate(value)
        return estimator
