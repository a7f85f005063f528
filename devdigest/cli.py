"""
Command-line interface for DevDigest.

Usage:
    devdigest refresh        # Run one refresh over all active sources
    devdigest refresh --dry-run
    devdigest summarize      # Summarize unprocessed items
    devdigest init-db        # Create tables
    devdigest seed-sources   # Load the source catalog
    devdigest status         # Show stored totals and per-source stats
    devdigest reset-stats    # Clear per-source fetch stats
    devdigest serve          # Start the API server
    devdigest health         # Check dependencies
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from devdigest.config.settings import get_settings
from devdigest.observability.logging import setup_logging
from devdigest.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """DevDigest - tech and startup content aggregator."""
    setup_logging("DEBUG" if debug else None)


def _echo_result(result) -> None:
    color = "green" if result.state.value == "completed" else "yellow"
    click.echo(click.style(f"\nRefresh {result.state.value} ({result.duration_ms} ms)", fg=color))
    click.echo("-" * 40)
    click.echo(f"  New items:         {result.total_fetched}/{result.max_total}")
    click.echo(f"  Sources processed: {result.sources_processed}")
    click.echo(f"  Per-source cap:    {result.max_per_source}")

    for type_name, stats in result.per_type_stats.items():
        if not stats["processed"]:
            continue
        click.echo(
            f"  {type_name:<6} {stats['success']}/{stats['processed']} ok, "
            f"{stats['total_fetched']} items"
        )

    if result.errors:
        click.echo(click.style(f"\n  {len(result.errors)} source(s) failed:", fg="red"))
        for error in result.errors:
            click.echo(click.style(f"    ✗ {error}", fg="red"))
    click.echo("-" * 40)


@main.command()
@click.option("--parallel/--sequential", default=None, help="Process source types concurrently")
@click.option("--force", is_flag=True, help="Only deduplicate against recently stored items")
@click.option("--dry-run", is_flag=True, help="Use the bundled catalog and an in-memory store")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
def refresh(parallel: bool | None, force: bool, dry_run: bool, as_json: bool) -> None:
    """Run one refresh over all active sources."""
    from devdigest.services.refresh_service import RefreshService

    async def run():
        if dry_run:
            from devdigest.sources.memory import InMemorySourceRegistry
            from devdigest.storage.memory import InMemoryContentStore

            service = RefreshService(
                registry=InMemorySourceRegistry.from_seed_file(),
                store=InMemoryContentStore(),
            )
            result = await service.run(parallel=parallel, force=force)
            await service.drain()
            return result

        from devdigest.sources.service import SourcesService
        from devdigest.storage.database import Database
        from devdigest.storage.repository import ContentRepository

        db = Database()
        await db.connect()
        try:
            sources = SourcesService(db)
            await sources.ensure_seeded()
            service = RefreshService(registry=sources, store=ContentRepository(db))
            result = await service.run(parallel=parallel, force=force)
            await service.drain()
            return result
        finally:
            await db.close()

    result = asyncio.run(run())

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _echo_result(result)


@main.command()
@click.option("--limit", default=None, type=int, help="Items to summarize (default: batch size)")
def summarize(limit: int | None) -> None:
    """Summarize stored items that have not been processed yet."""
    from devdigest.storage.database import Database
    from devdigest.storage.repository import ContentRepository
    from devdigest.summarization.service import SummarizationService

    async def run():
        db = Database()
        await db.connect()
        try:
            service = SummarizationService(ContentRepository(db))
            return await service.summarize_pending(limit)
        finally:
            await db.close()

    stats = asyncio.run(run())
    click.echo(
        f"Summarized {stats.processed} items "
        f"({stats.model} model, {stats.fallback} fallback, {stats.errors} errors)"
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from devdigest.sources.repository import SOURCES_SCHEMA_SQL
    from devdigest.storage.database import Database
    from devdigest.storage.repository import CONTENT_SCHEMA_SQL

    async def run():
        db = Database()
        await db.connect()
        try:
            await db.run_script(CONTENT_SCHEMA_SQL, SOURCES_SCHEMA_SQL)
        finally:
            await db.close()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command("seed-sources")
@click.option(
    "--file",
    "path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON catalog to load (default: bundled catalog)",
)
def seed_sources(path: Path | None) -> None:
    """Upsert the source catalog into the database."""
    from devdigest.sources.service import SourcesService
    from devdigest.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            service = SourcesService(db)
            await service.repository.create_table()
            return await service.seed_from_json(path)
        finally:
            await db.close()

    count = asyncio.run(run())
    click.echo(f"Seeded {count} sources")


@main.command()
def status() -> None:
    """Show stored item totals and per-source fetch stats."""
    from devdigest.sources.service import SourcesService
    from devdigest.storage.database import Database
    from devdigest.storage.repository import ContentRepository

    async def run():
        db = Database()
        await db.connect()
        try:
            total = await ContentRepository(db).count()
            sources, _ = await SourcesService(db).list_sources(limit=500)
            return total, sources
        finally:
            await db.close()

    total, sources = asyncio.run(run())

    click.echo(f"\nStored items: {total}")
    click.echo(f"Sources:      {len(sources)} ({sum(s.is_active for s in sources)} active)")
    click.echo("-" * 60)
    for source in sources:
        stats = source.stats
        icon = "✓" if stats.last_fetch_success is not False else "✗"
        color = "green" if stats.last_fetch_success is not False else "red"
        last = source.last_fetched.strftime("%Y-%m-%d %H:%M") if source.last_fetched else "never"
        click.echo(
            click.style(f"  {icon} ", fg=color)
            + f"{source.name:<28} {source.type_name:<6} "
            f"fetched={stats.total_fetched:<5} success={stats.success_rate:>5}%  last={last}"
        )


@main.command("reset-stats")
@click.confirmation_option(prompt="Clear fetch stats for every source?")
def reset_stats() -> None:
    """Clear fetch statistics for every source."""
    from devdigest.sources.service import SourcesService
    from devdigest.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await SourcesService(db).reset_stats()
        finally:
            await db.close()

    count = asyncio.run(run())
    click.echo(f"Reset stats for {count} sources")


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from devdigest.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        results["reddit_oauth_configured"] = get_settings().reddit_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for name, ok in results.items():
            icon = "✓" if ok else "✗"
            click.echo(click.style(f"  {icon} {name}: {ok}", fg="green" if ok else "red"))
        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        click.echo(click.style("Database unreachable!", fg="red"))
        sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "devdigest.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
