"""Shared helpers for cfstack commands."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from config import Settings, load_settings, set_settings
from manifest import Manifest, ValuesStore, load_manifest

PROGRESS_LOGGER = "cfstack.progress"


class ProgressHandler(logging.Handler):
    """Echo progress records as plain lines, errors in red."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                message = click.style(message, fg="red")
            elif record.levelno >= logging.WARNING:
                message = click.style(message, fg="yellow")
            click.echo(message)
        except Exception:
            self.handleError(record)


def setup_logging(level: str, verbose: bool = False) -> None:
    """Diagnostics go to stderr at the configured level; progress to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    progress = logging.getLogger(PROGRESS_LOGGER)
    progress.setLevel(logging.INFO)
    progress.propagate = False
    if not any(isinstance(h, ProgressHandler) for h in progress.handlers):
        handler = ProgressHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        progress.addHandler(handler)


def init_settings(config_file: Optional[str], verbose: bool) -> Settings:
    settings = load_settings(config_file)
    set_settings(settings)
    setup_logging(settings.log_level, verbose)
    return settings


def load_run_inputs(manifest_file: str, values_file: Optional[str]):
    """Load the manifest and its values; a relative values path is relative to the manifest."""
    manifest: Manifest = load_manifest(manifest_file)

    values = ValuesStore()
    if values_file:
        path = Path(values_file)
        if not path.is_absolute():
            path = manifest.templates_root / path
        values = ValuesStore.load(path)
    return manifest, values


def exit_with_error(command: str, error: Exception) -> None:
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    click.echo(click.style(f"{command} command has failed", fg="red"), err=True)
    sys.exit(1)


def success(message: str) -> None:
    click.echo(click.style(f"\n{message}", fg="green", bold=True))
