"""Typer CLI entrypoint for calendar-crawler."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Iterable, NoReturn, Optional, Sequence

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, CrawlerConfig
from .engine import signals as sig
from .errors import CrawlerError
from .logging_conf import configure_logging, crawler_log_path, tail_log
from .models import CanonicalEvent, SyncBatchResult
from .orchestrator import ScrapeOrchestrator, build_orchestrator, build_sink

app = typer.Typer(
    help="calendar-crawler command line",
    no_args_is_help=True,
    rich_markup_mode=None,
)
history_app = typer.Typer(name="history", help="Seen-event history commands", no_args_is_help=True)
cache_app = typer.Typer(name="cache", help="Scrape cache commands", no_args_is_help=True)
settings_app = typer.Typer(name="settings", help="User settings commands", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: CrawlerConfig
    orchestrator: ScrapeOrchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load_config()
    orchestrator = build_orchestrator(config, repository)
    orchestrator.startup()
    return AppState(repository=repository, config=config, orchestrator=orchestrator)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(exc: Exception) -> NoReturn:
    console.print(f"Error: {exc}", style="red")
    raise typer.Exit(code=1)


def _render_events_table(events: Sequence[CanonicalEvent], title: str) -> Table:
    table = Table(title=f"{title} · {len(events)}", box=box.SIMPLE_HEAD)
    table.add_column("Date", style="green", no_wrap=True)
    table.add_column("Category", style="magenta")
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Source", overflow="fold")
    for event in events:
        table.add_row(
            event.start_date.strftime("%Y-%m-%d"),
            event.category.value,
            event.title,
            event.source_url,
        )
    return table


def _render_mapping(title: str, rows: Iterable[tuple[str, Any]]) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", overflow="fold")
    for key, value in rows:
        table.add_row(key, "-" if value is None else str(value))
    return table


def _print_sync_result(result: SyncBatchResult) -> None:
    summary = result.summary()
    console.print(
        f"Synced {summary['success']}/{summary['total']} events "
        f"in {summary['batches']} batches ({summary['failed']} failed).",
        style="green" if not result.failed else "yellow",
    )
    for failure in result.failed:
        console.print(f"- {failure.event.title}: {failure.error}", style="red")


app.add_typer(history_app, name="history")
app.add_typer(cache_app, name="cache")
app.add_typer(settings_app, name="settings")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("scrape", help="Scrape the news page, using the cache when it is fresh.")
def scrape(
    ctx: typer.Context,
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore cached results."),
    as_json: bool = typer.Option(False, "--json", help="Print events as JSON."),
) -> None:
    state = _get_state(ctx)
    try:
        events = state.orchestrator.scrape_events(use_cache=not no_cache)
    except CrawlerError as exc:
        _fail(exc)
    if as_json:
        typer.echo(json.dumps([event.to_json() for event in events], ensure_ascii=False, indent=2))
        return
    if not events:
        console.print("No events found.", style="dim")
        return
    console.print(_render_events_table(events, "Events"))


@app.command("new", help="Scrape live and show only events not seen before.")
def new_events(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        events = state.orchestrator.scrape_new_events()
    except CrawlerError as exc:
        _fail(exc)
    if not events:
        console.print("No new events.", style="dim")
        return
    console.print(_render_events_table(events, "New events"))


def _wait_until_interrupted() -> None:
    while True:
        time.sleep(1)


@app.command("watch", help="Poll for new events until interrupted.")
def watch(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Minutes between polls (default: the sync_interval setting)."
    ),
) -> None:
    state = _get_state(ctx)
    if interval is not None and interval <= 0:
        raise typer.BadParameter("--interval must be > 0")
    orchestrator = state.orchestrator
    current = orchestrator.settings.get_settings()
    minutes = interval if interval is not None else current.sync_interval
    unsubscribe = orchestrator.signals.subscribe(
        sig.NEW_EVENTS_FOUND,
        lambda events: console.print(_render_events_table(events, "New events")),
    )
    orchestrator.setup_auto_scraping(minutes)
    console.print(f"Watching {orchestrator.target_url} every {minutes:g} min. Ctrl+C to stop.", style="cyan")
    if current.auto_sync:
        console.print("auto_sync is on: new events are synced to the calendar.", style="cyan")
    try:
        orchestrator.poll_once(sync_new=current.auto_sync)
        _wait_until_interrupted()
    except KeyboardInterrupt:
        console.print("Stopping watcher.", style="yellow")
    finally:
        orchestrator.stop_auto_scraping()
        unsubscribe()
        orchestrator.scheduler.shutdown()


@app.command("sync", help="Export scraped events to the calendar sink.")
def sync(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Sync at most N events."),
    sink: Optional[str] = typer.Option(None, "--sink", help="Sink to use: mock or file."),
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    if sink is not None:
        try:
            orchestrator.use_sink(build_sink(state.config, state.repository, sink))
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    try:
        events = orchestrator.scrape_events(use_cache=True)
    except CrawlerError as exc:
        _fail(exc)
    if limit is not None:
        events = events[:limit]
    if not events:
        console.print("No events to sync.", style="dim")
        return
    result = orchestrator.sync_events(events)
    _print_sync_result(result)
    if result.failed:
        raise typer.Exit(code=1)


@app.command("stats", help="Show scraping and storage statistics.")
def stats(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    scraping = state.orchestrator.get_scraping_stats()
    cache_info = scraping["cache_info"]
    console.print(
        _render_mapping(
            "Scraping",
            [
                ("total_events", scraping["total_events"]),
                ("last_scraping", scraping["last_scraping"]),
                ("cache_keys", cache_info.get("keys")),
                ("cache_size", cache_info.get("formatted_size")),
            ],
        )
    )
    by_category = scraping["events_by_category"]
    if by_category:
        console.print(_render_mapping("Events by category", sorted(by_category.items())))
    storage = state.orchestrator.get_storage_info()
    console.print(
        _render_mapping(
            "Storage",
            [(name, info.get("formatted_size", info.get("error"))) for name, info in storage.items()],
        )
    )


@history_app.command("list", help="List remembered events, newest first.")
def history_list(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", min=1, help="Show at most N records."),
) -> None:
    state = _get_state(ctx)
    records = state.orchestrator.history.list()[:limit]
    if not records:
        console.print("History is empty.", style="dim")
        return
    table = Table(title=f"History · {len(records)}", box=box.SIMPLE_HEAD)
    table.add_column("Added", style="green", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Title", style="cyan", overflow="fold")
    for record in records:
        table.add_row(
            record.added_at.strftime("%Y-%m-%d %H:%M"),
            record.start_date.strftime("%Y-%m-%d"),
            record.title,
        )
    console.print(table)


@history_app.command("clear", help="Forget every remembered event.")
def history_clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation."),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm("Clear the event history?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    if not state.orchestrator.history.clear():
        _fail(RuntimeError("history could not be cleared"))
    console.print("History cleared.", style="green")


@cache_app.command("sweep", help="Remove expired cache entries.")
def cache_sweep(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    removed = state.orchestrator.cache.sweep()
    console.print(f"Removed {removed} expired entries.", style="green")


@cache_app.command("clear", help="Remove every cache entry.")
def cache_clear(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    if not state.orchestrator.cache.clear():
        _fail(RuntimeError("cache could not be cleared"))
    console.print("Cache cleared.", style="green")


@settings_app.command("show", help="Show current user settings.")
def settings_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    current = state.orchestrator.settings.get_settings()
    console.print(_render_mapping("Settings", current.model_dump().items()))


@settings_app.command("set", help="Change one user setting.")
def settings_set(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Setting name."),
    value: str = typer.Argument(..., help="New value (YAML scalar)."),
) -> None:
    state = _get_state(ctx)
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        parsed = value
    try:
        updated = state.orchestrator.settings.set(name, parsed)
    except (ValueError, ValidationError) as exc:
        _fail(exc)
    console.print(f"{name} = {getattr(updated, name)}", style="green")


@log_app.command("show", help="Show the most recent lines of the crawler log.")
def log_show(
    tail: int = typer.Option(100, "--tail", min=1, help="Show the last N lines."),
) -> None:
    lines = tail_log(crawler_log_path(), tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"crawler.log · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
