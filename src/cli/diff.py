"""
Diff command.
"""

from typing import Optional

import click

from deployment import Orchestrator

from .common import exit_with_error, load_run_inputs, success


@click.command()
@click.option("--manifest", "-m", required=True, type=click.Path(exists=True, dir_okay=False), help="Manifest file")
@click.option("--values", "values_file", default="values.json", show_default=True, help="Values file")
@click.option("--profile", help="Profile to use from AWS credentials")
@click.option("--role", help="CloudFormation service role to be used for stack operations")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Concurrent workers for fetching diffs")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Diff output file")
@click.pass_context
def diff(
    ctx: click.Context,
    manifest: str,
    values_file: str,
    profile: Optional[str],
    role: Optional[str],
    workers: Optional[int],
    output: Optional[str],
) -> None:
    """Write the changes each stack of a manifest would go through."""
    try:
        loaded, values = load_run_inputs(manifest, values_file)
        orchestrator = Orchestrator(
            loaded,
            settings=ctx.obj["settings"],
            values=values,
            profile=profile,
            role_arn=role,
            workers=workers,
        )
        path = orchestrator.diff(output)
    except Exception as e:
        exit_with_error("Diff", e)
    click.echo(f"Diff written to {path}")
    success("Diff command has completed")
