"""
Init command.
"""

from typing import Optional

import click

from deployment import init_region

from .common import exit_with_error, success


@click.command()
@click.option("--region", "-r", required=True, help="AWS region to init cfstack in")
@click.option("--profile", help="Profile to use from AWS credentials")
@click.pass_context
def init(ctx: click.Context, region: str, profile: Optional[str]) -> None:
    """Create the buckets and role cfstack needs in a region."""
    click.echo(f"==> ⚙️  Initializing your account to run cfstack in {region}")
    try:
        init_region(region, settings=ctx.obj["settings"], profile=profile)
    except Exception as e:
        exit_with_error("Init", e)
    success(f"✅ Initialization complete in {region}")
