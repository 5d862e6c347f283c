"""Data models for agy-top.

This module contains all Pydantic models used throughout the application,
ensuring strict type safety and runtime validation."""

# Import all enums
from .enums import (
    DetectionFailure,
    LeaderboardPeriod,
    Locale,
    ModelCategory,
    SubmissionStatus,
    UsagePeriod,
)

# Import discovery models
from .discovery import DetectionResult, ProcessCandidate, ServerHandle

# Import quota models
from .quota import CreditPool, ModelQuota, QuotaSnapshot, TokenUsage, UserInfo

# Import usage models
from .usage import (
    GENESIS_CHECKSUM,
    AccumulatedUsage,
    EstimateResult,
    ModelBreakdownEntry,
    ModelQuotaState,
    SubmissionCursor,
    SubmissionResponse,
    SubmissionResult,
    UsageSubmission,
)

# Import leaderboard models
from .leaderboard import (
    LeaderboardData,
    LeaderboardEntry,
    RankSummary,
    StoredAuth,
    UsageHistory,
    UsageRecord,
    UserProfile,
)

__all__ = [
    # Enums
    "DetectionFailure",
    "LeaderboardPeriod",
    "Locale",
    "ModelCategory",
    "SubmissionStatus",
    "UsagePeriod",
    # Discovery models
    "DetectionResult",
    "ProcessCandidate",
    "ServerHandle",
    # Quota models
    "CreditPool",
    "ModelQuota",
    "QuotaSnapshot",
    "TokenUsage",
    "UserInfo",
    # Usage models
    "GENESIS_CHECKSUM",
    "AccumulatedUsage",
    "EstimateResult",
    "ModelBreakdownEntry",
    "ModelQuotaState",
    "SubmissionCursor",
    "SubmissionResponse",
    "SubmissionResult",
    "UsageSubmission",
    # Leaderboard models
    "LeaderboardData",
    "LeaderboardEntry",
    "RankSummary",
    "StoredAuth",
    "UsageHistory",
    "UsageRecord",
    "UserProfile",
]
