"""Rich renderables for the dashboard, leaderboard and submit output."""

from datetime import datetime, timezone
from typing import Optional

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from models import (
    CreditPool,
    LeaderboardData,
    ModelCategory,
    RankSummary,
    SubmissionResult,
    UsageHistory,
)
from services.dashboard import DashboardState

from .i18n import Translator

MAX_MODEL_ROWS = 7
NAME_WIDTH = 30

CATEGORY_LABELS = {
    ModelCategory.GEMINI_FLASH: "Gemini Flash",
    ModelCategory.GEMINI_PRO: "Gemini Pro",
    ModelCategory.CLAUDE: "Claude",
}


def format_tokens(tokens: float) -> str:
    """Compact token count: 1.5M, 12.0K or the plain number."""
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(int(tokens))


def format_age(moment: Optional[datetime], t: Translator, now: Optional[datetime] = None) -> str:
    if moment is None:
        return "-"
    now = now or datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())
    if seconds < 5:
        return t("just_now")
    if seconds < 60:
        return f"{seconds}{t('seconds_ago')}"
    if seconds < 3600:
        return f"{seconds // 60}{t('minutes_ago')}"
    return f"{seconds // 3600}{t('hours_ago')}"


def percent_style(percentage: float) -> str:
    if percentage >= 80:
        return "green"
    if percentage >= 40:
        return "yellow"
    return "red"


def percent_bar(percentage: float, width: int = 20) -> Text:
    filled = round(max(min(percentage, 100.0), 0.0) / 100 * width)
    bar = Text("█" * filled, style=percent_style(percentage))
    bar.append("░" * (width - filled), style="dim")
    return bar


def truncate(name: str, width: int = NAME_WIDTH) -> str:
    return name if len(name) <= width else name[: width - 2] + ".."


def _status_line(state: DashboardState, t: Translator, now: Optional[datetime]) -> Text:
    line = Text()
    models = len(state.snapshot.models) if state.snapshot else 0
    line.append(f"{t('models')} ", style="dim")
    line.append(str(models))
    if state.handle:
        line.append("  │  ", style="dim")
        line.append(f"port {state.handle.port}", style="dim")
    line.append("  │  ", style="dim")
    if state.loading:
        line.append(t("refreshing"), style="yellow")
    else:
        line.append(f"{t('last')} {format_age(state.last_refresh, t, now)}")
    line.append("  ")
    line.append("●" if state.authenticated else "○", style="green" if state.authenticated else "dim")
    return line


def _credit_row(table: Table, label: str, pool: CreditPool) -> None:
    table.add_row(
        label,
        percent_bar(pool.remaining_percentage),
        f"{pool.remaining_percentage:.0f}%",
        f"({format_tokens(pool.available)}/{format_tokens(pool.monthly)})",
    )


def _credits(state: DashboardState, t: Translator) -> Optional[RenderableType]:
    snapshot = state.snapshot
    if snapshot is None or snapshot.token_usage is None:
        return None
    table = Table.grid(padding=(0, 2))
    if snapshot.prompt_credits:
        _credit_row(table, t("prompt"), snapshot.prompt_credits)
    if snapshot.flow_credits:
        _credit_row(table, t("flow"), snapshot.flow_credits)
    return Panel(table, title=t("credits_overview"), title_align="left", border_style="dim")


def _model_table(state: DashboardState, t: Translator) -> RenderableType:
    models = state.snapshot.models if state.snapshot else []
    if not models:
        return Panel(Text(t("no_model_data"), style="dim"), title=t("model_quotas"), title_align="left")

    table = Table(box=None, header_style="dim", pad_edge=False)
    table.add_column(t("model"), no_wrap=True)
    table.add_column("")
    table.add_column(t("remaining"), justify="right")
    table.add_column(t("resets_in"), justify="right")

    for model in models[:MAX_MODEL_ROWS]:
        if model.is_exhausted:
            remaining = Text("NONE", style="red")
        else:
            remaining = Text(
                f"{model.remaining_percentage:.0f}%", style=percent_style(model.remaining_percentage)
            )
        table.add_row(
            truncate(model.label), percent_bar(model.remaining_percentage, 8), remaining, model.time_until_reset
        )

    body: RenderableType = table
    if len(models) > MAX_MODEL_ROWS:
        body = Group(table, Text(f"... and {len(models) - MAX_MODEL_ROWS} more models", style="dim"))
    return Panel(body, title=t("model_quotas"), title_align="left", border_style="dim")


def _usage(state: DashboardState, t: Translator) -> RenderableType:
    usage = state.usage
    table = Table.grid(padding=(0, 2))
    for category, tokens in usage.by_category().items():
        table.add_row(CATEGORY_LABELS[category], format_tokens(tokens))
    table.add_row(Text(t("total"), style="bold"), Text(format_tokens(usage.total), style="bold"))
    return Panel(table, title=t("estimated_usage"), title_align="left", border_style="dim")


def render_dashboard(
    state: DashboardState, t: Translator, now: Optional[datetime] = None
) -> RenderableType:
    """Build one dashboard frame from the current state."""
    parts = [Panel(_status_line(state, t, now), title=Text(t("title"), style="bold cyan"), border_style="cyan")]

    if state.error:
        message = Text(f"⚠  {state.error}", style="red")
        if state.tip:
            message.append(f"\n   {state.tip}", style="dim")
        parts.append(message)

    user_info = state.snapshot.user_info if state.snapshot else None
    if user_info:
        user_line = Text()
        user_line.append(user_info.name or "User", style="bold")
        user_line.append("  │  ", style="dim")
        user_line.append(user_info.tier or "Free", style="yellow")
        if user_info.plan_name:
            user_line.append("  │  ", style="dim")
            user_line.append(user_info.plan_name, style="cyan")
        parts.append(user_line)

    credits = _credits(state, t)
    if credits is not None:
        parts.append(credits)
    parts.append(_model_table(state, t))
    parts.append(_usage(state, t))

    if state.submission_error:
        parts.append(Text(f"{t('submit_failed')} {state.submission_error}", style="red"))
    elif state.submission and state.submission.submitted:
        parts.append(Text(f"{t('submit_success')} #{state.submission.rank or '-'}", style="green"))

    if state.rank_mode and not state.authenticated:
        parts.append(Text(t("not_authenticated"), style="yellow"))

    return Group(*parts)


def render_leaderboard(data: LeaderboardData, t: Translator) -> RenderableType:
    title = f"{t('leaderboard')} · {t.period(data.period)}"
    if not data.entries:
        return Panel(Text(t("no_entries_yet"), style="dim"), title=title)

    table = Table(title=title, header_style="bold")
    table.add_column(t("rank"), justify="right")
    table.add_column(t("user"))
    table.add_column(t("tokens"), justify="right")
    table.add_column(t("tier"))

    for entry in data.entries:
        style = "bold green" if entry.is_current_user else None
        table.add_row(
            f"#{entry.rank}", entry.display_name, format_tokens(entry.total_tokens), entry.tier, style=style
        )

    if data.user_rank is None:
        return table
    footer = Text(f"{t('your_rank')} #{data.user_rank} / {data.total_participants} {t('participants')}")
    return Group(table, footer)


def render_submission(result: SubmissionResult, t: Translator) -> RenderableType:
    table = Table.grid(padding=(0, 2))
    table.add_row(t("input_tokens"), format_tokens(result.input_tokens))
    table.add_row(t("output_tokens"), format_tokens(result.output_tokens))
    if result.trust_score is not None:
        table.add_row(t("trust_score"), f"{result.trust_score:.0f}/100")
    if result.rank:
        table.add_row(t("rank"), f"#{result.rank}")
    return table


def render_usage_history(
    history: UsageHistory, summary: RankSummary, period: str, t: Translator
) -> RenderableType:
    title = f"{t('usage_history')} · {t.period(period)}"
    if summary.rank is not None:
        footer = Text(f"{t('your_rank')} #{summary.rank} / {summary.total_participants} {t('participants')}")
    else:
        footer = Text(t("not_ranked"), style="dim")
    if not history.records:
        return Group(Panel(Text(t("no_usage_data"), style="dim"), title=title), footer)

    table = Table(title=title, header_style="bold")
    table.add_column(t("period"))
    table.add_column(t("input_tokens"), justify="right")
    table.add_column(t("output_tokens"), justify="right")
    table.add_column(t("sessions"), justify="right")
    table.add_column(t("trust_score"), justify="right")

    for record in history.records:
        table.add_row(
            (record.period_start or "-")[:10],
            format_tokens(record.input_tokens),
            format_tokens(record.output_tokens),
            str(record.session_count),
            "-" if record.trust_score is None else f"{record.trust_score}/100",
        )
    records = history.records
    table.add_row(
        t("total"),
        format_tokens(sum(r.input_tokens for r in records)),
        format_tokens(sum(r.output_tokens for r in records)),
        str(sum(r.session_count for r in records)),
        "",
        style="bold",
    )
    return Group(table, footer)
