"""
Resource Sync — CLI Entry Point

Usage:
    python -m resource_sync.main run [--config FILE] [--interval N]
    python -m resource_sync.main sync-once
    python -m resource_sync.main check-config [--json]
    python -m resource_sync.main status
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import json
import logging
import signal
import threading
from typing import Optional

import click

from .config.loader import SyncSettings, load_settings
from .config.validator import check_settings
from .engine.monitor import ChangeMonitor
from .engine.notifier import FailureNotifier
from .errors import ConfigError, NoCommitsError, SyncError
from .logging_config import setup_logging
from .mirror.repository import RepositoryMirror
from .store.mongo import MongoStore

logger = logging.getLogger(__name__)


def startup(settings: SyncSettings) -> ChangeMonitor:
    """
    Clone the repository and run the first full sync.

    Raises:
        SyncError: Any failure here is fatal for the process
    """
    logger.info(f"Initializing the parser with repo {settings.redacted()['repo_url']}")

    mirror = RepositoryMirror.initialize(
        settings.repo_url,
        settings.repo_dir,
        timeout=settings.git_timeout_seconds,
    )
    store = MongoStore.connect(
        settings.mongo_url,
        settings.mongo_db,
        settings.mongo_collection,
        timeout_ms=settings.mongo_timeout_ms,
    )

    monitor = ChangeMonitor(
        mirror,
        store,
        notifier=FailureNotifier(webhook_url=settings.alert_webhook_url),
        interval=settings.poll_interval_seconds,
        data_dir=settings.data_dir,
        records_field=settings.records_field,
    )
    try:
        monitor.initial_sync()
    except Exception:
        store.close()
        raise
    return monitor


def _load_or_exit(ctx: click.Context, **overrides) -> SyncSettings:
    try:
        return load_settings(ctx.obj.get("config_file"), **overrides)
    except ConfigError as e:
        logger.error(str(e))
        click.secho(f"✗ {e}", fg="red", err=True)
        ctx.exit(1)


@click.group()
@click.option(
    "--config", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (env vars take precedence)",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], log_level: Optional[str]) -> None:
    """Resource Sync — Mirror a git repository of JSON resources into MongoDB."""
    setup_logging(level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


@cli.command()
@click.option("--interval", type=float, default=None, help="Seconds between checks")
@click.pass_context
def run(ctx: click.Context, interval: Optional[float]) -> None:
    """Clone, sync once, then poll the remote until interrupted."""
    settings = _load_or_exit(ctx, poll_interval_seconds=interval)

    try:
        monitor = startup(settings)
    except SyncError as e:
        logger.error(f"Startup sync failed: {type(e).__name__}: {e}")
        ctx.exit(1)

    shutdown = threading.Event()

    def _handle_sigterm(signum, frame):
        logger.info("Received SIGTERM")
        shutdown.set()

    previous_handler = signal.signal(signal.SIGTERM, _handle_sigterm)

    monitor.start()
    try:
        while monitor.running and not shutdown.wait(timeout=1):
            pass
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        monitor.stop(timeout=settings.git_timeout_seconds)
        monitor.store.close()
        signal.signal(signal.SIGTERM, previous_handler)
        logger.info("Goodbye")


@cli.command("sync-once")
@click.pass_context
def sync_once(ctx: click.Context) -> None:
    """Clone and run a single full sync, then exit."""
    settings = _load_or_exit(ctx)

    try:
        monitor = startup(settings)
    except SyncError as e:
        logger.error(f"Sync failed: {type(e).__name__}: {e}")
        ctx.exit(1)

    monitor.store.close()
    click.secho("✓ Sync complete", fg="green")


@cli.command("check-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, as_json: bool) -> None:
    """Show which configuration options are set."""
    report = check_settings(ctx.obj.get("config_file"))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        ctx.exit(0 if report.configured else 1)

    click.echo("\n⚙️  Configuration\n")
    for name in report.present:
        click.echo(f"  ✅ {name}")
    for name in report.missing:
        click.echo(f"  ❌ {name} — {report.guidance.get(name, '')}")
    for error in report.errors:
        click.secho(f"  ⚠️  {error}", fg="yellow")
    click.echo()

    if report.configured:
        click.secho("✓ Configuration complete", fg="green")
    else:
        click.secho("✗ Configuration incomplete", fg="red")
        ctx.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the mirror's reference and the collection size."""
    settings = _load_or_exit(ctx)

    click.echo(f"Repository:   {settings.redacted()['repo_url']}")
    click.echo(f"Mirror:       {settings.repo_dir}")

    if settings.repo_dir.is_dir():
        mirror = RepositoryMirror(settings.repo_dir, timeout=settings.git_timeout_seconds)
        try:
            click.echo(f"Reference:    {mirror.current_reference()}")
        except NoCommitsError as e:
            click.echo(f"Reference:    unavailable ({e})")
    else:
        click.echo("Reference:    (not cloned)")

    click.echo(f"Collection:   {settings.mongo_db}.{settings.mongo_collection}")
    try:
        store = MongoStore.connect(
            settings.mongo_url,
            settings.mongo_db,
            settings.mongo_collection,
            timeout_ms=settings.mongo_timeout_ms,
        )
    except SyncError as e:
        click.secho(f"Documents:    unavailable ({e})", fg="yellow")
        ctx.exit(1)

    try:
        click.echo(f"Documents:    {store.count()}")
    except SyncError as e:
        click.secho(f"Documents:    unavailable ({e})", fg="yellow")
        ctx.exit(1)
    finally:
        store.close()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
