"""Quota snapshot models for agy-top."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CreditPool(BaseModel):
    """One monthly credit pool (prompt or flow credits)."""

    model_config = ConfigDict(frozen=True)

    available: float = Field(..., description="Credits still available")
    monthly: float = Field(..., gt=0, description="Monthly allowance")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def used(self) -> float:
        return self.monthly - self.available

    @computed_field  # type: ignore[prop-decorator]
    @property
    def used_percentage(self) -> float:
        return (self.monthly - self.available) / self.monthly * 100

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_percentage(self) -> float:
        return self.available / self.monthly * 100


class TokenUsage(BaseModel):
    """Combined view over both credit pools."""

    model_config = ConfigDict(frozen=True)

    prompt_credits: Optional[CreditPool] = None
    flow_credits: Optional[CreditPool] = None
    total_available: float = 0
    total_monthly: float = 0
    overall_remaining_percentage: float = 0


class UserInfo(BaseModel):
    """Subscription details reported by the language server."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    email: Optional[str] = None
    tier: Optional[str] = None
    plan_name: Optional[str] = None


class ModelQuota(BaseModel):
    """Remaining quota for one model; model_id is the join key across snapshots."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Display label")
    model_id: str = Field(..., description="Stable model identifier")
    remaining_percentage: float = Field(..., ge=0, le=100)
    reset_time: Optional[datetime] = None
    time_until_reset: str = "Ready"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_exhausted(self) -> bool:
        return self.remaining_percentage == 0

    @property
    def used_percentage(self) -> float:
        return 100 - self.remaining_percentage


class QuotaSnapshot(BaseModel):
    """One point-in-time read of credits and model quotas."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    prompt_credits: Optional[CreditPool] = None
    flow_credits: Optional[CreditPool] = None
    token_usage: Optional[TokenUsage] = None
    user_info: Optional[UserInfo] = None
    models: List[ModelQuota] = Field(default_factory=list)

    @property
    def tier(self) -> Optional[str]:
        return self.user_info.tier if self.user_info else None
