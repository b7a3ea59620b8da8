#!/usr/bin/env python3
"""Main CLI entry point for cfstack."""

from typing import Optional

import click

from .common import init_settings
from .delete import delete
from .deploy import deploy
from .diff import diff
from .init import init


@click.group()
@click.version_option(package_name="cfstack")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Config file (default is ~/.cfstack.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: bool) -> None:
    """CloudFormation deployments driven by a manifest file.

    A manifest lists stacks per region; cfstack reviews and deploys them
    across regions with a bounded pool of workers.
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = init_settings(config_file, verbose)
    except (OSError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


cli.add_command(init)
cli.add_command(deploy)
cli.add_command(diff)
cli.add_command(delete)


if __name__ == "__main__":
    cli()
