# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/cli.py

"""
pinbot Command Line Interface

Thin wrapper around the operations module. Meant to be started by cron or
a supervisor; `pinbot run` performs one cycle and exits.
"""

import json
import logging
import os
import sys
from pathlib import Path

import click

from pinbot import config as config_module
from pinbot import operations
from pinbot.config import LoggingConfig
from pinbot.operations import PinbotError

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def setup_logging(log_config: LoggingConfig) -> None:
    """Send log records to the configured file (or stderr) at the configured level."""
    level_name = "debug" if os.environ.get("PINBOT_DEBUG") else log_config.level
    level = getattr(logging, level_name.upper(), logging.INFO)
    if log_config.path:
        Path(log_config.path).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_config.path, mode="a")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)


def _load(config_file: Path, common_file: Path):
    """Load config or exit with a message."""
    try:
        return config_module.load_config(common_path=common_file, config_path=config_file)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    except ValueError as e:
        click.echo(f"Error: Invalid config: {e}", err=True)
        sys.exit(2)


def handle_errors(func):
    """Decorator to turn fatal pinbot errors into exit code 2."""
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PinbotError as e:
            logging.getLogger("pinbot").critical(f"{type(e).__name__}: {e}")
            click.echo(f"Error: {e}", err=True)
            sys.exit(2)
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


config_file_option = click.option(
    "--config-file",
    type=click.Path(exists=True, path_type=Path),
    help="Config file path (default: /etc/tfc/pinbot.toml)",
)
common_file_option = click.option(
    "--common-file",
    type=click.Path(path_type=Path),
    help="Shared config path (default: /etc/tfc/common.toml)",
)


@click.group()
def cli():
    """Keep under-replicated media pinned on the local IPFS node."""
    pass


@cli.command()
@config_file_option
@common_file_option
@click.option(
    "--skip-catalog",
    is_flag=True,
    help="Do not fetch the media catalog; work from the ledger only",
)
@click.option(
    "--output-json",
    type=click.Path(path_type=Path),
    help="Write the cycle report as JSON to this file",
)
@handle_errors
def run(config_file: Path, common_file: Path, skip_catalog: bool, output_json: Path) -> None:
    """
    Run one pinning cycle.

    Refreshes the catalog, resolves sizes, refreshes replica counts and
    pins under-replicated items that fit in the disk budget.

    Exit code is 0 when every stage succeeded, 1 when some items failed,
    2 on a fatal error.
    """
    cfg = _load(config_file, common_file)
    setup_logging(cfg.logging)

    report = operations.run_cycle(cfg, skip_catalog=skip_catalog)

    if report.ingest:
        click.echo(f"ingested: {report.ingest.created} new, {report.ingest.duplicates} known")
    elif report.catalog_error:
        click.echo(f"catalog: {report.catalog_error}", err=True)
    click.echo(f"sizes: {report.sizes.resolved} resolved, {report.sizes.failed} failed")
    click.echo(
        f"replicas: {report.replication.updated} checked, {report.replication.failed} failed"
    )
    click.echo(
        f"pins: {report.retention.pinned} pinned, {report.retention.failed} failed, "
        f"{report.retention.projected_bytes}/{report.retention.budget_bytes} bytes"
    )

    if output_json:
        with open(output_json, "w") as f:
            f.write(report.to_json())
        click.echo(f"report written to: {output_json}")

    sys.exit(0 if report.ok else 1)


@cli.command()
@config_file_option
@common_file_option
@handle_errors
def status(config_file: Path, common_file: Path) -> None:
    """
    Show ledger summary counts.
    """
    cfg = _load(config_file, common_file)
    click.echo(operations.status(cfg).to_json())


@cli.command()
@config_file_option
@common_file_option
@click.option("--pinned", is_flag=True, help="Only items pinned locally")
@click.option("--candidates", is_flag=True, help="Only admission candidates, in order")
@handle_errors
def ls(config_file: Path, common_file: Path, pinned: bool, candidates: bool) -> None:
    """
    List tracked items.
    """
    if pinned and candidates:
        raise click.UsageError("--pinned and --candidates are mutually exclusive")
    cfg = _load(config_file, common_file)
    items = operations.ls(cfg, pinned=pinned, candidates=candidates)
    click.echo(json.dumps([i.to_dict() for i in items], indent=2))


@cli.command("reset-failed")
@config_file_option
@common_file_option
@handle_errors
def reset_failed(config_file: Path, common_file: Path) -> None:
    """
    Retry size resolution of items that failed before.
    """
    cfg = _load(config_file, common_file)
    count = operations.reset_failed(cfg)
    click.echo(f"cleared {count} failed items")


@cli.command()
@config_file_option
@common_file_option
@click.option(
    "--validate-only",
    is_flag=True,
    help="Only validate config, don't display it",
)
def config(config_file: Path, common_file: Path, validate_only: bool) -> None:
    """
    Display and validate pinbot configuration.

    Examples:

        pinbot config                    # Display config with validation

        pinbot config --validate-only    # Just check for errors
    """
    config_path = config_file or config_module.DEFAULT_CONFIG
    cfg = _load(config_file, common_file)

    errors, warnings = cfg.validate()

    if not validate_only:
        click.echo(f"Config file: {config_path}")
        click.echo()
        click.echo(json.dumps(cfg.to_dict(), indent=2))
        click.echo()

    if errors:
        click.echo("Errors:", err=True)
        for e in errors:
            click.echo(f"  ✗ {e}", err=True)
    if warnings:
        click.echo("Warnings:")
        for w in warnings:
            click.echo(f"  ⚠ {w}")
    if not errors and not warnings:
        click.echo("✓ Config is valid")

    sys.exit(1 if errors else 0)
