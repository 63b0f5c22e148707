"""CLI entry-point for the hole archiver."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .api import HoleAPI
from .config import MAX_REF_LEVELS, ArchiveConfig, HoleConfig, default_output_dir
from .errors import TreasureHoleError
from .harvester import ArchiveStats, Harvester
from .progress import RichProgressListener

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_stats(stats: ArchiveStats) -> None:
    table = Table(title="Backup Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in stats.as_dict().items():
        table.add_row(key.capitalize(), str(val))
    console.print(table)


@click.group()
@click.option("--api-base", envvar="HOLE_API_BASE", default="https://tapi.thuhole.com", help="Hole API base URL")
@click.option("--image-base", envvar="HOLE_IMAGE_BASE", default="https://i.thuhole.com", help="Image host base URL")
@click.option("--timeout", envvar="HOLE_TIMEOUT", default=30.0, type=float, help="Per-request timeout in seconds")
@click.option("--proxy", envvar="HOLE_PROXY", default=None, help="HTTP(S) proxy URL")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, api_base: str, image_base: str, timeout: float, proxy: str | None, verbose: bool) -> None:
    """Hole archiver – back up your bookmarked posts for offline reading.

    Fetches every bookmarked post, follows #pid references, downloads all
    images and writes a self-contained archive with a static viewer.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["api_base"] = api_base.rstrip("/")
    ctx.obj["image_base"] = image_base.rstrip("/")
    ctx.obj["timeout"] = timeout
    ctx.obj["proxy"] = proxy or None


def _hole_config(ctx: click.Context, batch_size: int = 10) -> HoleConfig:
    return HoleConfig(
        api_base=ctx.obj["api_base"],
        image_base=ctx.obj["image_base"],
        timeout=ctx.obj["timeout"],
        batch_size=batch_size,
    )


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.argument("token", envvar="HOLE_TOKEN")
@click.option("--levels", "-l", default=2, show_default=True,
              type=click.IntRange(0, MAX_REF_LEVELS), help="Reference levels to follow")
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Output directory (default: <date>-<token>)")
@click.option("--batch-size", envvar="HOLE_BATCH_SIZE", default=10, show_default=True,
              type=click.IntRange(1), help="Concurrent requests per batch")
@click.option("--overwrite", is_flag=True, help="Replace an existing output directory")
@click.option("--zip", "zip_archive", is_flag=True, help="Also pack the archive into <output>.zip")
@click.pass_context
def backup(
    ctx: click.Context,
    token: str,
    levels: int,
    output: Path | None,
    batch_size: int,
    overwrite: bool,
    zip_archive: bool,
) -> None:
    """Back up all bookmarked posts.

    Example: treasurehole backup <token> --levels 2
    """
    cfg = ArchiveConfig(
        token=token,
        output_dir=output or default_output_dir(token),
        ref_levels=levels,
        proxy=ctx.obj["proxy"],
        overwrite=overwrite,
        zip_archive=zip_archive,
        hole=_hole_config(ctx, batch_size),
    )
    console.print(f"[bold]Backing up into [cyan]{cfg.output_dir}[/cyan]...[/bold]")

    async def _run() -> ArchiveStats:
        with RichProgressListener(console) as listener:
            async with Harvester(cfg, listener=listener) as h:
                return await h.run()

    try:
        stats = asyncio.run(_run())
    except TreasureHoleError as exc:
        console.print(f"[red]✗[/red] Backup failed: {exc}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Archive saved to {cfg.output_dir}")
    _print_stats(stats)


@cli.command()
@click.argument("token", envvar="HOLE_TOKEN")
@click.option("--limit", default=0, type=int, help="Number of posts to show (0 = all)")
@click.pass_context
def bookmarks(ctx: click.Context, token: str, limit: int) -> None:
    """List bookmarked post ids without archiving anything.

    Example: treasurehole bookmarks <token> --limit 20
    """
    cfg = ArchiveConfig(token=token, output_dir=Path.cwd(), ref_levels=0, hole=_hole_config(ctx))

    async def _list() -> list[int]:
        async with HoleAPI(token, cfg.hole, proxy=ctx.obj["proxy"]) as api:
            return await Harvester(cfg, api=api).list_bookmarks()

    try:
        pids = asyncio.run(_list())
    except TreasureHoleError as exc:
        console.print(f"[red]✗[/red] {exc}")
        sys.exit(1)

    table = Table(title=f"Bookmarks ({len(pids)})", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Post", style="bold", justify="right")
    for i, pid in enumerate(pids[:limit] if limit > 0 else pids, start=1):
        table.add_row(str(i), f"#{pid}")
    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
