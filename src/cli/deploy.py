"""
Deploy commands.
"""

from typing import Optional

import click

from deployment import Orchestrator

from .common import exit_with_error, load_run_inputs, success


def _orchestrator(ctx: click.Context) -> Orchestrator:
    opts = ctx.obj["deploy"]
    manifest, values = load_run_inputs(opts["manifest"], opts["values"])
    return Orchestrator(
        manifest,
        settings=ctx.obj["settings"],
        values=values,
        profile=opts["profile"],
        role_arn=opts["role"],
        workers=opts["workers"],
    )


@click.group(invoke_without_command=True)
@click.option("--manifest", "-m", required=True, type=click.Path(exists=True, dir_okay=False), help="Manifest file")
@click.option("--values", "values_file", default="values.json", show_default=True, help="Values file")
@click.option("--profile", help="Profile to use from AWS credentials")
@click.option("--role", help="CloudFormation service role to be used for stack operations")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Concurrent workers for deploying stacks")
@click.pass_context
def deploy(
    ctx: click.Context,
    manifest: str,
    values_file: str,
    profile: Optional[str],
    role: Optional[str],
    workers: Optional[int],
) -> None:
    """Deploy the CloudFormation stacks defined in a manifest file."""
    ctx.ensure_object(dict)
    ctx.obj["deploy"] = {
        "manifest": manifest,
        "values": values_file,
        "profile": profile,
        "role": role,
        "workers": workers,
    }
    if ctx.invoked_subcommand is not None:
        return

    try:
        _orchestrator(ctx).deploy()
    except Exception as e:
        exit_with_error("Deploy", e)
    success("Deploy stacks command completed")


@deploy.command("stack")
@click.option("--name", "-n", required=True, help="Name of the stack to be deployed")
@click.option("--region", "-r", required=True, help="Region in which stack is to be deployed")
@click.pass_context
def deploy_stack(ctx: click.Context, name: str, region: str) -> None:
    """Deploy a single stack of the manifest."""
    try:
        _orchestrator(ctx).deploy_stack(name, region)
    except Exception as e:
        exit_with_error("Deploy stack", e)
    success("Deploy stack command completed")
