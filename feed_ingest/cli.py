"""
Command-line interface for feed_ingest.

Uses Typer to expose discovery, parsing, subscription management and the
refresh cycle. Supports loading .env files for the refresh secret.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .errors import FeedIngestError
from .runner import (
    Pipeline,
    RefreshResult,
    add_feed,
    authorize_refresh,
    ingest_newsletter,
    open_pipeline,
    refresh_feeds,
    refresh_message,
)
from .utils.logging import setup_logging

try:
    from dotenv import load_dotenv
except Exception:  # noqa: BLE001
    load_dotenv = None

app = typer.Typer(add_completion=False, help="Discover, parse and refresh RSS/Atom feeds.")
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    store_path: Path | None = typer.Option(None, "--store", help="JSON store file."),
    store_backend: str | None = typer.Option(None, "--store-backend", help="Store backend: json or memory."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="HTTP timeout in seconds."),
):
    """Load configuration and logging shared by every command."""
    # Load environment variables from .env if available
    if load_dotenv is not None:
        load_dotenv()

    cfg = load_config(str(config) if config else None)

    # Override with CLI options
    if store_path is not None:
        cfg.store.path = str(store_path)
    if store_backend:
        cfg.store.backend = store_backend
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file
    if timeout is not None:
        cfg.fetch.timeout_seconds = timeout

    setup_logging(cfg.logging)
    ctx.obj = cfg


@contextmanager
def _pipeline(ctx: typer.Context) -> Iterator[Pipeline]:
    """Open the pipeline and turn pipeline errors into a clean exit."""
    cfg: AppConfig = ctx.obj
    try:
        with open_pipeline(cfg) as pipeline:
            yield pipeline
    except FeedIngestError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _user(ctx: typer.Context, user: str | None) -> str:
    return user or ctx.obj.refresh.default_user


@app.command()
def discover(ctx: typer.Context, url: str = typer.Argument(..., help="Site or feed URL.")):
    """Print the feed URL for a site."""
    with _pipeline(ctx) as pipeline:
        console.print(pipeline.discoverer.discover(url))


@app.command()
def parse(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Feed URL."),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum items to show."),
):
    """Fetch and parse a feed, then list its items."""
    with _pipeline(ctx) as pipeline:
        feed = pipeline.parser.parse_url(url)

    table = Table(title=feed.title or url)
    table.add_column("Published")
    table.add_column("Title")
    table.add_column("Link", overflow="fold")
    for item in feed.items[:limit]:
        table.add_row(item.iso_date or item.pub_date or "", item.title, item.link)
    console.print(table)
    console.print(f"{len(feed.items)} items")


@app.command()
def add(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Site or feed URL."),
    user: str | None = typer.Option(None, "--user", "-u", help="User id."),
):
    """Discover, parse and subscribe to a feed."""
    with _pipeline(ctx) as pipeline:
        result = add_feed(
            pipeline.store,
            pipeline.discoverer,
            pipeline.parser,
            _user(ctx, user),
            url,
            cap=pipeline.cfg.ingest.add_feed_cap,
        )
    console.print(
        f"Added [bold]{result.feed.title}[/bold] ({result.feed.url}) "
        f"with {len(result.articles)} articles."
    )


@app.command()
def refresh(
    ctx: typer.Context,
    authorization: str | None = typer.Option(
        None,
        "--authorization",
        envvar="REFRESH_AUTHORIZATION",
        help='Scheduled callers pass "Bearer <secret>".',
    ),
    user: str | None = typer.Option(None, "--user", "-u", help="Only refresh this user's feeds."),
    details: bool = typer.Option(False, "--details", help="Show per-feed results."),
):
    """Refresh all known feeds and report how many articles were added."""
    with _pipeline(ctx) as pipeline:
        authorize_refresh(pipeline.cfg, authorization)
        result = refresh_feeds(
            pipeline.store, pipeline.parser, user_id=user, cap=pipeline.cfg.ingest.refresh_cap
        )
    if details:
        _print_outcomes(result)
    console.print(refresh_message(result))


def _print_outcomes(result: RefreshResult) -> None:
    table = Table(title="Refresh")
    table.add_column("Feed", overflow="fold")
    table.add_column("New", justify="right")
    table.add_column("Status")
    for outcome in result.outcomes:
        status = "[green]ok[/green]" if outcome.ok else f"[red]{outcome.error_kind}[/red]"
        table.add_row(outcome.url, str(outcome.new_articles), status)
    console.print(table)


@app.command()
def feeds(ctx: typer.Context, user: str | None = typer.Option(None, "--user", "-u")):
    """List subscribed feeds."""
    with _pipeline(ctx) as pipeline:
        items = pipeline.store.list_feeds(_user(ctx, user))

    table = Table(title="Feeds")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("URL", overflow="fold")
    table.add_column("Last fetched")
    for feed in items:
        table.add_row(feed.id, feed.title, feed.url, feed.last_fetched or "")
    console.print(table)


@app.command()
def remove(ctx: typer.Context, feed_id: str = typer.Argument(..., help="Feed id.")):
    """Delete a feed and its articles."""
    with _pipeline(ctx) as pipeline:
        deleted = pipeline.store.delete_feed(feed_id)
    if not deleted:
        console.print(f"[red]No feed with id {feed_id}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Removed feed {feed_id}")


@app.command()
def articles(
    ctx: typer.Context,
    user: str | None = typer.Option(None, "--user", "-u"),
    unread: bool = typer.Option(False, "--unread", help="Only unread articles."),
    limit: int = typer.Option(50, "--limit", "-n"),
):
    """List stored articles, newest first."""
    with _pipeline(ctx) as pipeline:
        items = pipeline.store.list_articles(_user(ctx, user), unread_only=unread)

    table = Table(title="Articles")
    table.add_column("ID")
    table.add_column("Published")
    table.add_column("Title")
    table.add_column("Read")
    for article in items[:limit]:
        table.add_row(article.id, article.pub_date, article.title, "yes" if article.is_read else "")
    console.print(table)


@app.command("mark-read")
def mark_read(
    ctx: typer.Context,
    article_id: str | None = typer.Argument(None, help="Article id."),
    all_: bool = typer.Option(False, "--all", help="Mark every article as read."),
    user: str | None = typer.Option(None, "--user", "-u"),
):
    """Mark one article, or all of them, as read."""
    if not all_ and not article_id:
        console.print("[red]Give an article id or --all[/red]")
        raise typer.Exit(code=2)
    with _pipeline(ctx) as pipeline:
        if all_:
            changed = pipeline.store.mark_all_read(_user(ctx, user))
            console.print(f"Marked {changed} articles as read")
            return
        found = pipeline.store.mark_read(article_id)
    if not found:
        console.print(f"[red]No article with id {article_id}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Marked {article_id} as read")


@app.command("ingest-email")
def ingest_email(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, readable=True, help="Raw .eml file."),
    user: str | None = typer.Option(None, "--user", "-u"),
):
    """Store a newsletter email as an article."""
    with _pipeline(ctx) as pipeline:
        article = ingest_newsletter(pipeline.store, _user(ctx, user), path.read_bytes())
    if article is None:
        console.print("Newsletter already stored")
        return
    console.print(f"Stored newsletter: {article.title}")


if __name__ == "__main__":
    app()
