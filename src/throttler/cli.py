"""CLI entry point for the deployment throttler.

Each invocation performs one pass and exits; schedule it externally
(cron, systemd timer) to keep instances up to date.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from throttler.config import ConfigError, ThrottlerConfig, find_config, load_config
from throttler.logging import setup_logging
from throttler.scheduler import Throttler
from throttler.state_store import StateStoreError
from throttler.tgs import TGSError

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _load(config_path: Path | None) -> ThrottlerConfig:
    if config_path is None:
        config_path = find_config()
    return load_config(config_path)


def _setup_logging(config: ThrottlerConfig, verbose: bool) -> None:
    setup_logging(
        log_dir=config.get_log_dir(),
        level="DEBUG" if verbose else config.logging.level,
        console=config.logging.console,
    )


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to throttler.yaml (auto-detected if not specified)",
)


@click.group()
@click.version_option(package_name="tgs-throttler")
def main() -> None:
    """Throttle compile-and-deploy jobs across TGS instances."""
    pass


@main.command()
@config_option
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Evaluate instances without updating or deploying anything",
)
@click.option(
    "--max-jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Override the configured maximum of concurrent compile jobs",
)
def run(config_path: Path | None, verbose: bool, dry_run: bool, max_jobs: int | None) -> None:
    """Trigger deployments of outdated instances, up to the job limit."""
    try:
        config = _load(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    if max_jobs is not None:
        config.throttle.max = max_jobs
    _setup_logging(config, verbose)

    throttler = Throttler.connect(config, dry_run=dry_run)
    try:
        state = throttler.run()
    finally:
        throttler.close()

    if state is None or state.error is not None:
        sys.exit(EXIT_FAILED)
    sys.exit(EXIT_OK)


@main.command()
@config_option
def status(config_path: Path | None) -> None:
    """Show online instances, active compile jobs and free capacity."""
    try:
        config = _load(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    _setup_logging(config, verbose=False)
    throttler = Throttler.connect(config)
    try:
        if not throttler.runnable:
            click.echo(f"Error: {throttler.startup_error}", err=True)
            sys.exit(EXIT_FAILED)

        try:
            instances = throttler.state_store.list_online_instances()
            active_jobs = throttler.state_store.list_active_compile_jobs(
                throttler.user_id if throttler.user_id is not None else throttler.tgs.get_user_id(),
                throttler.compile_job_description,
            )
        except (StateStoreError, TGSError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(EXIT_FAILED)
    finally:
        throttler.close()

    compiling = {job.instance_id for job in active_jobs}
    click.echo(f"Online instances: {len(instances)}")
    for instance in instances:
        marker = " [compiling]" if instance.id in compiling else ""
        click.echo(f"  {instance.id:>4}  {instance.name}{marker}")
    free = max(0, config.throttle.max - len(active_jobs))
    click.echo(f"Active compile jobs: {len(active_jobs)}/{config.throttle.max} ({free} free)")


if __name__ == "__main__":
    main()
