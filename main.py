"""Main application entry point for agy-top."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import typer
from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.live import Live

from config import ApplicationConfig, load_config
from models import LeaderboardPeriod, Locale, SubmissionStatus, UsagePeriod
from services import ConfigStore, DashboardController, LoginFlow, logout, open_context
from services.submission_engine import seconds_since
from ui import (
    Translator,
    render_dashboard,
    render_leaderboard,
    render_submission,
    render_usage_history,
)
from utils import AgyTopError, configure_logging, get_logger, set_correlation_id

app = typer.Typer(
    help="Antigravity usage dashboard and leaderboard client.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


class Runtime(BaseModel):
    """Per-invocation settings shared by the callback and subcommands."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ApplicationConfig
    translator: Translator


def _bootstrap(debug: bool) -> Runtime:
    config = load_config(log_level="DEBUG") if debug else load_config()
    configure_logging(config.log_level, json_output=config.log_json, log_file=config.log_file)
    set_correlation_id()

    store = ConfigStore.from_config(config)
    return Runtime(config=config, translator=Translator(store.get_locale()))


def _print_error(error: AgyTopError) -> None:
    err_console.print(f"[red]Error:[/] {error.message}")
    if error.tip:
        err_console.print(f"[dim]{error.tip}[/]")


async def _run_dashboard(runtime: Runtime, rank: bool, refresh: bool, interval: int) -> int:
    t = runtime.translator
    logger = get_logger(__name__)

    async with open_context(runtime.config) as context:
        rank_mode = rank or context.store.is_authenticated()
        controller = DashboardController(context, rank_mode=rank_mode)

        with console.status(t("detecting_server")):
            await controller.refresh()

        state = controller.state
        if state.handle is None:
            err_console.print(f"[red]{t('server_not_found')}:[/] {state.error}")
            if state.tip:
                err_console.print(f"[dim]{state.tip}[/]")
            return EXIT_CODE_FAIL

        try:
            if not refresh:
                console.print(render_dashboard(state, t))
                return EXIT_CODE_OK

            stop_event = asyncio.Event()
            with Live(render_dashboard(state, t), console=console, refresh_per_second=2) as live:
                await controller.run(
                    interval,
                    lambda current: live.update(render_dashboard(current, t)),
                    stop_event,
                )
        finally:
            controller.close()
            logger.debug("Dashboard stopped")
    return EXIT_CODE_OK


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    show_config: bool = typer.Option(
        False, "--config", help="Print the config file path and exit"
    ),
    rank: bool = typer.Option(
        False, "--rank", "-r", help="Enable leaderboard mode with auto-submit"
    ),
    no_refresh: bool = typer.Option(
        False, "--no-refresh", "-n", help="Render one frame and exit"
    ),
    interval: Optional[int] = typer.Option(
        None, "--interval", "-i", min=1, help="Refresh interval in seconds"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Show the Antigravity quota dashboard."""
    runtime = _bootstrap(debug)
    ctx.obj = runtime

    if ctx.invoked_subcommand is not None:
        return

    if show_config:
        console.print(str(runtime.config.config_path), soft_wrap=True, highlight=False)
        raise typer.Exit(EXIT_CODE_OK)

    try:
        code = asyncio.run(
            _run_dashboard(
                runtime,
                rank=rank,
                refresh=not no_refresh,
                interval=interval or runtime.config.refresh_interval,
            )
        )
    except KeyboardInterrupt:
        console.print(runtime.translator("goodbye"))
        code = EXIT_CODE_OK
    raise typer.Exit(code)


async def _login(runtime: Runtime, check: bool) -> int:
    t = runtime.translator
    async with open_context(runtime.config) as context:
        store = context.store
        if check:
            if not store.is_authenticated():
                console.print(t("not_logged_in"))
                return EXIT_CODE_FAIL
            if not await context.leaderboard.validate_token():
                err_console.print(f"[yellow]{t('token_invalid')}[/]")
                return EXIT_CODE_FAIL
            console.print(f"[green]✓[/] {t('logged_in_as')} {store.email() or store.user_id()}")
            return EXIT_CODE_OK

        def announce(url: str) -> None:
            console.print(t("opening_browser"))
            console.print(f"[dim]{t('browser_fallback')} {url}[/]")
            console.print(t("waiting_for_login"))

        result = await LoginFlow(runtime.config, store, notify=announce).run()
        if not result.success:
            err_console.print(f"[red]{t('login_failed')}:[/] {result.error}")
            return EXIT_CODE_FAIL

        await context.reset_leaderboard_client()
        console.print(f"[green]✓[/] {t('login_success')}")
        if result.auth and result.auth.email:
            console.print(f"{t('logged_in_as')} {result.auth.email}")
        return EXIT_CODE_OK


@app.command()
def login(
    ctx: typer.Context,
    check: bool = typer.Option(False, "--check", help="Only verify the stored login"),
):
    """Log in through the browser to submit usage to the leaderboard."""
    raise typer.Exit(asyncio.run(_login(ctx.obj, check)))


async def _logout(runtime: Runtime) -> int:
    async with open_context(runtime.config) as context:
        logout(context.store)
        await context.reset_leaderboard_client()
    console.print(runtime.translator("logged_out"))
    return EXIT_CODE_OK


@app.command(name="logout")
def logout_command(ctx: typer.Context):
    """Forget the stored login."""
    raise typer.Exit(asyncio.run(_logout(ctx.obj)))


async def _rank(runtime: Runtime, period: LeaderboardPeriod, limit: int) -> int:
    async with open_context(runtime.config) as context:
        try:
            data = await context.leaderboard.get_leaderboard(period, limit)
        except AgyTopError as e:
            _print_error(e)
            return EXIT_CODE_FAIL
    console.print(render_leaderboard(data, runtime.translator))
    return EXIT_CODE_OK


@app.command()
def rank(
    ctx: typer.Context,
    period: LeaderboardPeriod = typer.Option(
        LeaderboardPeriod.WEEKLY, "--period", "-p", help="Leaderboard period"
    ),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=100, help="Number of entries"),
):
    """Show the leaderboard."""
    raise typer.Exit(asyncio.run(_rank(ctx.obj, period, limit)))


async def _usage(runtime: Runtime, period: UsagePeriod, limit: int) -> int:
    t = runtime.translator
    async with open_context(runtime.config) as context:
        if not context.store.is_authenticated():
            err_console.print(f"[yellow]{t('login_required')}[/]")
            return EXIT_CODE_FAIL
        try:
            history = await context.leaderboard.get_my_usage(period, limit)
            summary = await context.leaderboard.get_my_rank(LeaderboardPeriod(period.value))
        except AgyTopError as e:
            _print_error(e)
            return EXIT_CODE_FAIL
    console.print(render_usage_history(history, summary, period.value, t))
    return EXIT_CODE_OK


@app.command()
def usage(
    ctx: typer.Context,
    period: UsagePeriod = typer.Option(UsagePeriod.WEEKLY, "--period", "-p", help="Usage period"),
    limit: int = typer.Option(30, "--limit", "-l", min=1, max=365, help="Number of records"),
):
    """Show your submitted usage history and rank."""
    raise typer.Exit(asyncio.run(_usage(ctx.obj, period, limit)))


async def _submit(runtime: Runtime, force: bool) -> int:
    t = runtime.translator
    async with open_context(runtime.config) as context:
        store = context.store
        if not store.is_authenticated():
            err_console.print(f"[yellow]{t('login_required')}[/]")
            return EXIT_CODE_FAIL

        elapsed = seconds_since(store.get_cursor(), datetime.now(timezone.utc))
        if not force and elapsed is not None and elapsed < runtime.config.manual_submit_min_interval:
            console.print(f"[yellow]{t('recent_submission', minutes=round(elapsed / 60))}[/]")
            return EXIT_CODE_OK

        detection = await context.detector.detect()
        if not detection.success:
            err_console.print(f"[red]{t('server_not_found')}:[/] {detection.error}")
            if detection.tip:
                err_console.print(f"[dim]{detection.tip}[/]")
            return EXIT_CODE_FAIL

        try:
            snapshot = await context.fetcher.fetch(detection.server)
            with console.status(t("submitting")):
                result = await context.submission_engine.submit(snapshot)
        except AgyTopError as e:
            _print_error(e)
            return EXIT_CODE_FAIL

    if result.status == SubmissionStatus.NOTHING_TO_SUBMIT:
        console.print(t("no_new_usage"))
    elif result.submitted:
        console.print(f"[green]✓[/] {t('submit_success')} #{result.rank or '-'}")
        console.print(render_submission(result, t))
    else:
        err_console.print(f"[red]{result.message or t('submit_flagged')}[/]")
        if result.trust_score is not None and result.trust_score < 50:
            err_console.print(f"[yellow]{t('trust_score')}: {result.trust_score:.0f}/100[/]")
    return EXIT_CODE_OK


@app.command()
def submit(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Submit even if submitted within the last hour"),
):
    """Submit usage since the last submission to the leaderboard."""
    raise typer.Exit(asyncio.run(_submit(ctx.obj, force)))


@app.command()
def lang(
    ctx: typer.Context,
    locale: Optional[Locale] = typer.Argument(None, help="Language to use (en or zh)"),
):
    """Show or set the display language."""
    runtime: Runtime = ctx.obj
    store = ConfigStore.from_config(runtime.config)
    if locale is None:
        console.print(store.get_locale().value)
        raise typer.Exit(EXIT_CODE_OK)

    store.set_locale(locale)
    console.print(f"{Translator(locale)('language_set')} {locale.value}")
    raise typer.Exit(EXIT_CODE_OK)


if __name__ == "__main__":
    app()
