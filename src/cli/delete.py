"""
Delete commands.
"""

from typing import Optional

import click

from deployment import Orchestrator
from manifest import load_manifest

from .common import exit_with_error, success


def _orchestrator(ctx: click.Context) -> Orchestrator:
    opts = ctx.obj["delete"]
    return Orchestrator(
        load_manifest(opts["manifest"]),
        settings=ctx.obj["settings"],
        profile=opts["profile"],
        role_arn=opts["role"],
    )


@click.group(invoke_without_command=True)
@click.option("--manifest", "-m", required=True, type=click.Path(exists=True, dir_okay=False), help="Manifest file")
@click.option("--profile", help="Profile to use from AWS credentials")
@click.option("--role", help="CloudFormation service role to be used for stack operations")
@click.pass_context
def delete(ctx: click.Context, manifest: str, profile: Optional[str], role: Optional[str]) -> None:
    """Delete the CloudFormation stacks defined in a manifest file."""
    ctx.ensure_object(dict)
    ctx.obj["delete"] = {"manifest": manifest, "profile": profile, "role": role}
    if ctx.invoked_subcommand is not None:
        return

    try:
        _orchestrator(ctx).delete()
    except Exception as e:
        exit_with_error("Delete", e)
    success("Delete stacks command completed")


@delete.command("stack")
@click.option("--name", "-n", required=True, help="Name of the stack to be deleted")
@click.option("--region", "-r", required=True, help="Region the stack is deleted from")
@click.pass_context
def delete_stack(ctx: click.Context, name: str, region: str) -> None:
    """Delete a single stack of the manifest."""
    try:
        _orchestrator(ctx).delete_stack(name, region)
    except Exception as e:
        exit_with_error("Delete stack", e)
    success("Delete stack command completed")
