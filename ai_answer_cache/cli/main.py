"""
CLI interface for the AI answer cache.

Operator access to the cache store and usage statistics.
"""

import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ai_answer_cache.config.loader import Settings, load_settings
from ai_answer_cache.core.errors import AnswerCacheError
from ai_answer_cache.core.prompts import UserContext
from ai_answer_cache.sdk.service import AnswerService
from ai_answer_cache.storage.models import DAILY, MONTHLY, UsageBucket
from ai_answer_cache.storage.repository import CacheRepository, UsageRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _configure_logging(verbose: bool):
    """Route package logs through rich; debug output only with --verbose."""
    package_logger = logging.getLogger("ai_answer_cache")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=console, show_path=False))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging"
    )
):
    """AI Answer Cache CLI."""
    _configure_logging(verbose)
    try:
        ctx.obj = {"settings": load_settings(config)}
    except (OSError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if ctx.invoked_subcommand is None:
        console.print("AI Answer Cache - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Create the cache and usage tables."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.db_path)
        console.print(f"[green]✓[/] Database initialized at {settings.db_path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show configuration and cache size."""
    settings = _settings(ctx)
    result = CacheRepository(settings.db_path).stats()

    console.print(f"Database: {settings.db_path}")
    console.print(f"Models: {settings.default_model} (capable), {settings.cheap_model} (cheap)")
    console.print(f"Cache: {'enabled' if settings.cache_enabled else 'disabled'}, "
                  f"TTL {settings.cache_ttl_seconds}s")
    console.print(f"Monitoring: {'enabled' if settings.monitoring_enabled else 'disabled'}")
    console.print(f"API key: {'set' if settings.has_credentials else '[yellow]missing[/]'}")

    if not result.ok:
        console.print(f"[yellow]Cache store unavailable:[/] {result.error}")
        console.print("Run `ai-answer-cache init` to create it.")
        sys.exit(EXIT_CODE_PASS)

    entries, hits = result.value
    console.print(f"Cached answers: {entries:,} ({hits:,} hits)")


@app.command()
def usage(
    ctx: typer.Context,
    date: Optional[str] = typer.Option(
        None,
        "--date",
        "-d",
        help="Day to show (YYYY-MM-DD, default today)"
    ),
    month: Optional[str] = typer.Option(
        None,
        "--month",
        "-m",
        help="Month to show (YYYY-MM); overrides --date"
    ),
    list_periods: bool = typer.Option(
        False,
        "--list",
        "-l",
        help="List the days and months that have usage recorded"
    )
):
    """Show aggregated token usage and cost."""
    if list_periods:
        _display_periods(UsageRepository(_settings(ctx).db_path))
        sys.exit(EXIT_CODE_PASS)

    service = AnswerService(_settings(ctx))
    if month:
        bucket = service.get_monthly_usage_stats(month)
    else:
        bucket = service.get_usage_stats(date)

    if bucket is None:
        console.print("\n[bold yellow]No usage recorded for this period[/]\n")
        sys.exit(EXIT_CODE_PASS)

    _display_bucket(bucket)


@app.command()
def cleanup(ctx: typer.Context):
    """Delete expired cache entries and usage buckets past retention."""
    removed = AnswerService(_settings(ctx)).cleanup()
    console.print(f"[green]✓[/] Removed {removed['expired_cache_entries']} expired cache entries "
                  f"and {removed['usage_buckets']} old usage buckets")


@app.command()
def ask(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question to answer"),
    image: Optional[List[str]] = typer.Option(
        None,
        "--image",
        "-i",
        help="Image URL to attach (repeatable)"
    ),
    grade: Optional[int] = typer.Option(
        None,
        "--grade",
        "-g",
        help="Student grade"
    )
):
    """Answer a question through the cache."""
    service = AnswerService.from_settings(_settings(ctx))
    try:
        answer = service.generate_answer(
            question,
            images=image or None,
            user_context=UserContext(grade=grade) if grade else None,
        )
    except AnswerCacheError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(answer)


def _format_currency(amount: float) -> str:
    """Format a cost; per-request costs are fractions of a cent."""
    return f"${amount:,.6f}"


def _display_periods(repository: UsageRepository):
    """Display the recorded bucket keys, newest first."""
    for title, period in (("Days", DAILY), ("Months", MONTHLY)):
        result = repository.list_keys(period)
        if not result.ok:
            console.print(f"[yellow]Usage store unavailable:[/] {result.error}")
            return
        keys = result.value
        console.print(f"{title}: {', '.join(keys) if keys else 'none'}")


def _display_bucket(bucket: UsageBucket):
    """Display a usage bucket with model and method breakdowns."""
    console.print(f"\n[bold]Usage for {bucket.key}[/bold] ({bucket.period})")
    console.print("-" * 40)
    console.print(f"Requests: {bucket.total_requests:,}")
    console.print(f"Cache hits: {bucket.cache_hits:,}")
    console.print(f"Tokens: {bucket.total_tokens:,}")
    console.print(f"Estimated cost: {_format_currency(bucket.total_cost)}")

    for title, breakdown in (("By model", bucket.by_model), ("By method", bucket.by_method)):
        if not breakdown:
            continue
        table = Table(title=title)
        table.add_column("Name")
        table.add_column("Requests", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right")
        for name, totals in breakdown.items():
            table.add_row(name, f"{totals.requests:,}", f"{totals.tokens:,}",
                          _format_currency(totals.cost))
        console.print(table)


if __name__ == "__main__":
    app()
