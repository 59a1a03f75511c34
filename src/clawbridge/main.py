"""CLI entrypoint for clawbridge."""

import logging
import os
from pathlib import Path

import rich_click as click

from clawbridge import __version__
from clawbridge.controllers import (
    CheckBriefCommand,
    CommandResult,
    ConfigCommand,
    RunCommand,
    RunnerCliController,
)
from clawbridge.discovery.models import DiscoveryMode

click.rich_click.USE_MARKDOWN = True
CONTROLLER = RunnerCliController()

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_CONFIG_OPTION_HELP = "Path to config file. Defaults to ~/.clawbridge/config.yml."


@click.group()
@click.version_option(version=__version__, prog_name="clawbridge")
def clawbridge() -> None:
    """Find high-quality business connections with an agent CLI."""


@clawbridge.command("run")
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), default=None,
              help=_CONFIG_OPTION_HELP)
@click.option("-o", "--output", "output_dir", type=click.Path(path_type=Path), default=None,
              help="Output directory for run files.")
@click.option(
    "-t",
    "--timeout",
    "timeout_seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Discovery timeout in seconds passed to the agent tool.",
)
@click.option(
    "-m",
    "--mode",
    type=click.Choice([mode.value for mode in DiscoveryMode], case_sensitive=False),
    default=DiscoveryMode.REAL.value,
    show_default=True,
    help="real performs discovery; smoke only verifies the pipeline.",
)
@click.option("--upload/--no-upload", default=True, show_default=True, help="Upload to vault.")
@click.option("--dry-run", is_flag=True, default=False, help="Write a sample brief, no agent.")
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
def run(  # noqa: PLR0913
    config_path: Path | None,
    output_dir: Path | None,
    timeout_seconds: int | None,
    mode: str,
    upload: bool,
    dry_run: bool,
    debug: bool,
) -> None:
    """Execute discovery and upload results to the vault."""

    _configure_logging(debug=debug)
    result = CONTROLLER.run(
        RunCommand(
            config_path=config_path,
            output_dir=output_dir,
            timeout_seconds=timeout_seconds,
            mode=DiscoveryMode(mode.lower()),
            upload=upload,
            dry_run=dry_run,
        ),
    )
    _finish(result, failure_message="Run failed.")


@clawbridge.command("validate-config")
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), default=None,
              help=_CONFIG_OPTION_HELP)
def validate_config(config_path: Path | None) -> None:
    """Validate the configuration file."""

    _finish(
        CONTROLLER.validate_config(ConfigCommand(config_path=config_path)),
        failure_message="Configuration validation failed.",
    )


@clawbridge.command("doctor")
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), default=None,
              help=_CONFIG_OPTION_HELP)
def doctor(config_path: Path | None) -> None:
    """Check agent tools, configuration and vault settings."""

    _finish(
        CONTROLLER.doctor(ConfigCommand(config_path=config_path)),
        failure_message="Doctor check failed.",
    )


@clawbridge.command("check-brief")
@click.argument("path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--min-evidence",
    type=click.IntRange(min=1),
    default=2,
    show_default=True,
    help="Minimum evidence URLs per candidate.",
)
def check_brief(path: Path, min_evidence: int) -> None:
    """Validate a saved run JSON file against schema and hard rules."""

    _finish(
        CONTROLLER.check_brief(CheckBriefCommand(path=path, min_evidence=min_evidence)),
        failure_message="Brief validation failed.",
    )


def _configure_logging(*, debug: bool) -> None:
    level_name = "DEBUG" if debug else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=_LOG_FORMAT)


def _finish(result: CommandResult, *, failure_message: str) -> None:
    for line in result.lines:
        click.echo(line)
    if not result.success:
        raise click.ClickException(failure_message)


if __name__ == "__main__":  # pragma: no cover
    clawbridge()
