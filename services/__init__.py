"""Services for agy-top."""

from .auth_service import LoginFlow, LoginResult, LoginSession, logout
from .config_store import ConfigStore, generate_installation_id
from .context import AppContext, open_context
from .dashboard import DashboardController, DashboardState
from .leaderboard_client import LeaderboardClient
from .platform_strategies import (
    PlatformStrategy,
    PosixStrategy,
    WindowsStrategy,
    get_platform_strategy,
)
from .port_prober import PortProber
from .process_locator import CommandLineParser, ProcessLocator
from .quota_service import QuotaFetcher, format_time_until, parse_user_status
from .server_detector import ServerDetector
from .submission_engine import AutoSubmitPolicy, SubmissionEngine, usage_decreased
from .token_estimator import TokenEstimator, categorize_model, estimate_tokens_from_delta

__all__ = [
    "LoginFlow",
    "LoginResult",
    "LoginSession",
    "logout",
    "ConfigStore",
    "generate_installation_id",
    "AppContext",
    "open_context",
    "DashboardController",
    "DashboardState",
    "LeaderboardClient",
    "PlatformStrategy",
    "PosixStrategy",
    "WindowsStrategy",
    "get_platform_strategy",
    "PortProber",
    "CommandLineParser",
    "ProcessLocator",
    "QuotaFetcher",
    "format_time_until",
    "parse_user_status",
    "ServerDetector",
    "AutoSubmitPolicy",
    "SubmissionEngine",
    "usage_decreased",
    "TokenEstimator",
    "categorize_model",
    "estimate_tokens_from_delta",
]
