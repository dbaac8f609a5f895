"""Click-based CLI for gold-portfolio.

Thin wrapper around the library modules: each command loads config, calls
into the pipeline, cache or gateway, and renders the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from gold_portfolio.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Keep per-request transport chatter out of run logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _fail(exc: Exception) -> None:
    console.print(f"[red]FAILED:[/red] {exc}")
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="GOLD_PORTFOLIO_CONFIG",
    default=None,
    help="Path to gold-portfolio.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="gold-portfolio")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Gold Portfolio: cross-checked gold price feed and offline gateway."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Fetch, cross-check and publish the current gold price."""
    from gold_portfolio.core import GoldPortfolioError
    from gold_portfolio.pipeline import run_update

    try:
        config = _load_config(ctx)
        snapshot = _run_async(run_update(config))
    except GoldPortfolioError as exc:
        _fail(exc)

    table = Table(title=f"Gold price as of {snapshot.as_of:%Y-%m-%d %H:%M:%S}Z")
    table.add_column("Source", style="bold")
    table.add_column("EUR/oz", justify="right")
    table.add_column("Quote date", justify="right")
    table.add_row(
        snapshot.primary.source,
        f"{snapshot.primary.eur_per_oz}",
        f"{snapshot.primary.quote_date} {snapshot.primary.quote_time}",
    )
    table.add_row(
        snapshot.check.source,
        f"{snapshot.check.eur_per_oz:.2f}",
        f"{snapshot.check.quote_date} {snapshot.check.quote_time}",
    )
    console.print(table)
    console.print(
        f"[green]✓[/green] Wrote {config.pipeline.snapshot_path} "
        f"and appended to {config.pipeline.history_path}"
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the current snapshot and history length."""
    from gold_portfolio.core import GoldPortfolioError
    from gold_portfolio.pipeline import SnapshotWriter

    try:
        config = _load_config(ctx)
    except GoldPortfolioError as exc:
        _fail(exc)

    writer = SnapshotWriter.from_config(config.pipeline)
    try:
        snapshot = writer.read_snapshot()
        history = writer.read_history()
    except GoldPortfolioError as exc:
        _fail(exc)

    if snapshot is None:
        console.print("[yellow]No snapshot yet. Run 'update' first.[/yellow]")
        raise SystemExit(1)

    table = Table(title="Gold Portfolio Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("As of", f"{snapshot.as_of:%Y-%m-%d %H:%M:%S}Z")
    table.add_row("Primary EUR/oz", f"{snapshot.primary.eur_per_oz}")
    table.add_row("Check EUR/oz", f"{snapshot.check.eur_per_oz:.2f}")
    table.add_row("USD per EUR", f"{snapshot.check.usd_per_eur}")
    table.add_section()
    table.add_row("History records", str(len(history)))
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default: config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default: config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the offline-capable gateway in front of the app origin."""
    import uvicorn

    config = _load_config(ctx)
    if ctx.obj.get("config_path"):
        # The app factory loads its own config inside the server process
        os.environ["GOLD_PORTFOLIO_CONFIG"] = ctx.obj["config_path"]

    host = host or config.gateway.host
    port = port or config.gateway.port
    console.print(
        f"Serving [bold]{config.gateway.origin}[/bold] on [bold]{host}:{port}[/bold]"
    )

    uvicorn.run(
        "gold_portfolio.api.app:create_app",
        factory=True,
        host=host,
        port=port,
    )


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


@cli.group()
def cache() -> None:
    """Inspect and manage cache generations."""


@cache.command("list")
@click.pass_context
def cache_list(ctx: click.Context) -> None:
    """List cache generations and their entry counts."""
    from gold_portfolio.cache import create_cache_store
    from gold_portfolio.core import GoldPortfolioError

    async def _run():
        config = _load_config(ctx)
        store = await create_cache_store(config.cache)
        try:
            generations = sorted(await store.list_generations())
            counts = {g: await store.count_entries(g) for g in generations}
        finally:
            await store.close()

        table = Table(title=f"Cache generations ({config.cache.namespace})")
        table.add_column("Generation", style="bold")
        table.add_column("Entries", justify="right")
        table.add_column("Configured", justify="center")
        for g in generations:
            table.add_row(g, str(counts[g]), "✓" if g == config.cache.generation else "")
        console.print(table)

    try:
        _run_async(_run())
    except GoldPortfolioError as exc:
        _fail(exc)


@cache.command("install")
@click.pass_context
def cache_install(ctx: click.Context) -> None:
    """Populate the configured generation with the app shell and activate it."""
    from gold_portfolio.cache import CacheRouter, HttpNetwork, create_cache_store
    from gold_portfolio.core import GoldPortfolioError

    async def _run():
        config = _load_config(ctx)
        store = await create_cache_store(config.cache)
        network = HttpNetwork()
        try:
            cache_router = CacheRouter(
                store, network, config.cache, origin=config.gateway.origin
            )
            stored = await cache_router.install()
            purged = await cache_router.activate()
        finally:
            await network.close()
            await store.close()

        console.print(
            f"[green]✓[/green] Installed {config.cache.generation}: "
            f"{stored}/{len(config.cache.app_shell)} shell entries"
            + (f", purged {', '.join(sorted(purged))}" if purged else "")
        )

    try:
        _run_async(_run())
    except GoldPortfolioError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
