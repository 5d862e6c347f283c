"""Terminal rendering for agy-top."""

from .i18n import TRANSLATIONS, Translator
from .renderer import (
    format_age,
    format_tokens,
    percent_bar,
    render_dashboard,
    render_leaderboard,
    render_submission,
    render_usage_history,
)

__all__ = [
    "TRANSLATIONS",
    "Translator",
    "format_age",
    "format_tokens",
    "percent_bar",
    "render_dashboard",
    "render_leaderboard",
    "render_submission",
    "render_usage_history",
]
