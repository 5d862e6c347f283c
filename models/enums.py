"""Enumeration types for agy-top models."""

from enum import Enum


class ModelCategory(str, Enum):
    """Model families with separate assumed token budgets."""

    GEMINI_FLASH = "gemini_flash"
    GEMINI_PRO = "gemini_pro"
    CLAUDE = "claude"
    UNKNOWN = "unknown"


class DetectionFailure(str, Enum):
    """Why server detection did not produce a handle."""

    DISCOVERY_UNAVAILABLE = "discovery_unavailable"
    SERVER_NOT_FOUND = "server_not_found"
    SERVER_UNREACHABLE = "server_unreachable"


class SubmissionStatus(str, Enum):
    """Terminal outcomes of a submission attempt."""

    SUBMITTED = "submitted"
    NOTHING_TO_SUBMIT = "nothing_to_submit"
    REJECTED = "rejected"


class UsagePeriod(str, Enum):
    """Periods accepted by the usage history endpoint."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LeaderboardPeriod(str, Enum):
    """Periods accepted by the leaderboard and rank endpoints."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ALL_TIME = "all_time"


class Locale(str, Enum):
    """Supported display languages."""

    EN = "en"
    ZH = "zh"
