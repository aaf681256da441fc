"""
GitHub → Notion Sync CLI

Usage:
    issue-sync                  # Run full sync
    issue-sync --dry-run        # Preview changes without writing to Notion
    issue-sync --mode owned     # Sync every owned/collaborated repository
    issue-sync status           # Show what the Notion databases hold
    issue-sync version
"""

import sys
import traceback
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from issue_sync import __version__
from issue_sync.config import Config, SyncMode
from issue_sync.errors import SyncError
from issue_sync.sync_engine import SyncEngine

console = Console()


def _load_config(ctx) -> Config:
    config = Config.from_env()

    # Apply CLI overrides
    if ctx.obj.get("dry_run"):
        config.dry_run = True
    if ctx.obj.get("debug"):
        config.debug = True
    if ctx.obj.get("batch_size") is not None:
        config.batch_size = ctx.obj["batch_size"]
    if ctx.obj.get("mode"):
        config.mode = SyncMode(ctx.obj["mode"])

    # Re-run validation after overrides
    config.__post_init__()
    return config


@click.group(invoke_without_command=True)
@click.option("--dry-run", is_flag=True, help="Preview changes without writing to Notion")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--batch-size", type=int, default=None, help="Concurrent writes per batch")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SyncMode]),
    default=None,
    help="Where to read issues and pull requests from",
)
@click.pass_context
def cli(ctx, dry_run: bool, debug: bool, batch_size: Optional[int], mode: Optional[str]):
    """
    GitHub → Notion Sync

    Mirrors GitHub issues and pull requests into Notion databases.
    """
    ctx.ensure_object(dict)
    ctx.obj["dry_run"] = dry_run
    ctx.obj["debug"] = debug
    ctx.obj["batch_size"] = batch_size
    ctx.obj["mode"] = mode

    # If no subcommand, run sync
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


@cli.command()
@click.pass_context
def sync(ctx):
    """Run synchronization from GitHub to Notion."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
        engine = SyncEngine(config)
        summary = engine.run_sync()

        # Exit with error code if anything failed
        if not summary.success:
            sys.exit(1)

    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        console.print("\n[dim]Make sure you have created a .env file with your credentials.[/dim]")
        sys.exit(1)
    except SyncError as e:
        console.print(f"[red]Sync failed:[/red] {escape(str(e))}")
        if debug:
            traceback.print_exc()
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        if debug:
            traceback.print_exc()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show what the Notion databases currently hold."""
    try:
        config = _load_config(ctx)
        SyncEngine(config).status()
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)


@cli.command()
def version():
    """Show version information."""
    console.print(f"GitHub → Notion Sync v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
