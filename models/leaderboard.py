"""Leaderboard service response models for agy-top."""

from typing import List, Optional

from pydantic import Field, field_validator

from utils.numbers import to_int

from .usage import CamelModel


class LeaderboardEntry(CamelModel):
    """One ranked row."""

    rank: int
    display_name: str = "anonymous"
    total_tokens: int = 0
    session_count: int = 0
    tier: str = "free"
    is_current_user: bool = False

    @field_validator("rank", "total_tokens", "session_count", mode="before")
    @classmethod
    def coerce_ints(cls, v) -> int:
        return to_int(v)


class LeaderboardData(CamelModel):
    """Response of GET /leaderboard."""

    period: str = "weekly"
    period_date: Optional[str] = None
    entries: List[LeaderboardEntry] = Field(default_factory=list)
    user_rank: Optional[int] = None
    total_participants: int = 0

    @field_validator("total_participants", mode="before")
    @classmethod
    def coerce_participants(cls, v) -> int:
        return to_int(v)

    @field_validator("user_rank", mode="before")
    @classmethod
    def coerce_user_rank(cls, v) -> Optional[int]:
        return None if v in (None, "") else to_int(v)


class RankSummary(CamelModel):
    """Response of GET /rank."""

    rank: Optional[int] = None
    total_tokens: int = 0
    total_participants: int = 0

    @field_validator("total_tokens", "total_participants", mode="before")
    @classmethod
    def coerce_ints(cls, v) -> int:
        return to_int(v)

    @field_validator("rank", mode="before")
    @classmethod
    def coerce_rank(cls, v) -> Optional[int]:
        return None if v in (None, "") else to_int(v)


class UsageRecord(CamelModel):
    """One row of GET /usage/my."""

    period_start: Optional[str] = None
    period_end: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    session_count: int = 0
    trust_score: Optional[int] = None

    @field_validator("input_tokens", "output_tokens", "session_count", mode="before")
    @classmethod
    def coerce_ints(cls, v) -> int:
        return to_int(v)

    @field_validator("trust_score", mode="before")
    @classmethod
    def coerce_trust(cls, v) -> Optional[int]:
        return None if v in (None, "") else to_int(v)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageHistory(CamelModel):
    """Response of GET /usage/my."""

    records: List[UsageRecord] = Field(default_factory=list)
    total: int = 0

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v) -> int:
        return to_int(v)


class UserProfile(CamelModel):
    """Authenticated user as returned by the profile endpoint."""

    id: int
    email: str = ""
    name: Optional[str] = None
    tier: str = "free"

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v) -> int:
        return to_int(v)


class StoredAuth(CamelModel):
    """Credentials persisted after a browser login."""

    token: Optional[str] = None
    user_id: Optional[int] = None
    email: Optional[str] = None
