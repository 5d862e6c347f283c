"""Usage estimation and submission models for agy-top."""

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from utils.crypto import GENESIS_CHECKSUM
from utils.numbers import to_number

from .enums import ModelCategory, SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for models exchanged with the leaderboard service or the config file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModelQuotaState(CamelModel):
    """Estimator memory for one model id."""

    model_id: str
    category: ModelCategory
    previous_percentage: float
    current_percentage: float
    last_updated: datetime = Field(default_factory=_utcnow)


class AccumulatedUsage(CamelModel):
    """Estimated tokens consumed since the estimator was created or restored."""

    gemini_flash: int = Field(default=0, ge=0)
    gemini_pro: int = Field(default=0, ge=0)
    claude: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=_utcnow)

    def by_category(self) -> Dict[ModelCategory, int]:
        return {
            ModelCategory.GEMINI_FLASH: self.gemini_flash,
            ModelCategory.GEMINI_PRO: self.gemini_pro,
            ModelCategory.CLAUDE: self.claude,
        }


class EstimateResult(BaseModel):
    """Tokens consumed by a single estimator update."""

    model_config = ConfigDict(frozen=True)

    tokens_consumed: int = 0
    breakdown: Dict[ModelCategory, int] = Field(
        default_factory=lambda: {category: 0 for category in ModelCategory}
    )


class SubmissionCursor(CamelModel):
    """State of the most recent successful submission."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: datetime
    checksum: str = Field(..., min_length=64, max_length=64)
    total_used_input: int = Field(default=0, ge=0)
    total_used_output: int = Field(default=0, ge=0)

    @field_validator("total_used_input", "total_used_output", mode="before")
    @classmethod
    def coerce_totals(cls, v) -> int:
        return int(to_number(v))

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


class ModelBreakdownEntry(CamelModel):
    """Share of one increment attributed to a model."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    sessions: int = Field(default=0, ge=0)


class UsageSubmission(CamelModel):
    """Body of POST /usage/submit."""

    period_start: str
    period_end: str
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    session_count: int = Field(..., ge=0)
    model_breakdown: Dict[str, ModelBreakdownEntry] = Field(default_factory=dict)
    cumulative_checksum: str
    previous_checksum: str
    client_version: str


class SubmissionResponse(CamelModel):
    """Leaderboard acknowledgement of a submission."""

    success: bool = False
    trust_score: float = Field(default=0, ge=0, le=100)
    rank: Optional[int] = None
    message: Optional[str] = None

    @field_validator("trust_score", mode="before")
    @classmethod
    def coerce_trust_score(cls, v) -> float:
        return min(max(to_number(v), 0.0), 100.0)

    @field_validator("rank", mode="before")
    @classmethod
    def coerce_rank(cls, v) -> Optional[int]:
        if v is None or v == "":
            return None
        return int(to_number(v))


class SubmissionResult(BaseModel):
    """What a submission attempt ended with."""

    model_config = ConfigDict(frozen=True)

    status: SubmissionStatus
    input_tokens: int = 0
    output_tokens: int = 0
    trust_score: Optional[float] = None
    rank: Optional[int] = None
    message: Optional[str] = None
    cursor: Optional[SubmissionCursor] = None

    @property
    def submitted(self) -> bool:
        return self.status == SubmissionStatus.SUBMITTED
