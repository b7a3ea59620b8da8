"""
Top-level commands: deploy, diff, delete and init.
"""

import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from cloudformation.changeset import ChangeSetRequest, change_set_name
from cloudformation.errors import (
    DEFAULT_RULES,
    EXISTS_RULES,
    TRANSIENT_RULES,
    CfstackError,
    DeploymentError,
)
from cloudformation.init_template import INIT_STACK_POLICY, init_template_body
from cloudformation.stack_client import BASE_CAPABILITIES
from cloudformation.status import CREATE, UPDATE
from config import Settings, get_settings
from manifest.models import Manifest, Region, StackSpec
from manifest.values import ValuesStore

from .aggregator import RegionDiff, deployment_error, diff_document, write_diff
from .context import RegionContext, RunContext, StackJob, create_session
from .pool import WorkerPool
from .region import RegionFactory, deploy_region, diff_region, setup_region
from .stack_runner import StackRunner

logger = logging.getLogger(__name__)
progress = logging.getLogger("cfstack.progress")

ROCKET = "🚀"
KNIFE = "🔪"


class Orchestrator:
    """Runs manifest-wide commands over a bounded pool of region workers."""

    def __init__(
        self,
        manifest: Manifest,
        settings: Optional[Settings] = None,
        values: Optional[ValuesStore] = None,
        profile: Optional[str] = None,
        role_arn: Optional[str] = None,
        workers: Optional[int] = None,
        setup: RegionFactory = setup_region,
        context_factory: RegionFactory = RegionContext,
        session_factory=create_session,
        poller=None,
    ):
        """
        Initialize orchestrator.

        Args:
            manifest: Loaded manifest
            settings: Run settings (process settings if not provided)
            values: Values for ``{{name}}`` parameters
            profile: AWS profile to use
            role_arn: CloudFormation service role for stack operations
            workers: Concurrent stack workers per region
            setup: Builds the region context for region workers
            context_factory: Builds the region context for deletes, which
                need no templates bucket
            session_factory: Creates boto3 sessions per region
            poller: Poller shared by all remote operations
        """
        self.manifest = manifest
        self.settings = settings or get_settings()
        self.values = values if values is not None else ValuesStore()
        self.profile = profile if profile is not None else self.settings.profile
        self.role_arn = role_arn or None
        self.workers = workers or self.settings.max_workers
        self.setup = setup
        self.context_factory = context_factory
        self.session_factory = session_factory
        self.poller = poller

    def run_context(self, parallel: Optional[bool] = None) -> RunContext:
        """Fresh context, with a new run id, for one command invocation."""
        return RunContext(
            settings=self.settings,
            values=self.values,
            templates_root=self.manifest.templates_root,
            profile=self.profile,
            role_arn=self.role_arn,
            workers=self.workers,
            parallel=self.manifest.parallel if parallel is None else parallel,
            session_factory=self.session_factory,
            poller=self.poller,
        )

    def _region_pool(self, parallel: bool) -> WorkerPool:
        size = len(self.manifest.regions) if parallel else 1
        return WorkerPool(size, dispatch_interval=self.settings.dispatch_interval)

    def deploy(self) -> None:
        """Deploy every stack of the manifest.

        Raises:
            DeploymentError: One or more regions had failed stacks
        """
        run = self.run_context()
        results = self._region_pool(run.parallel).map(
            lambda region: deploy_region(region, run, self.setup), self.manifest.regions
        )

        for result in results:
            if not result.ok:
                progress.error("    %s", result.error)

        error = deployment_error(self.manifest.region_names, results)
        if error is not None:
            raise error

    def diff(self, output: Optional[Path] = None) -> Path:
        """Diff every stack of the manifest and write the diff document.

        Regions always run in parallel. The document is written even when some
        stacks fail; failed stacks appear in it with their reason.

        Returns:
            Path of the diff document

        Raises:
            DeploymentError: One or more regions had failed diffs
        """
        run = self.run_context()
        results = self._region_pool(parallel=True).map(
            lambda region: diff_region(region, run, self.setup), self.manifest.regions
        )

        diffs: List[RegionDiff] = []
        failed = set()
        for result in results:
            if not result.ok:
                progress.error("    %s", result.error)
                failed.add(result.job.name)
                continue
            diffs.append(result.value)
            if result.value.failed:
                failed.add(result.job.name)

        document = diff_document(self.manifest.region_names, diffs, self.manifest.parallel)
        path = write_diff(document, output or self.settings.diff_output)

        names = [name for name in self.manifest.region_names if name in failed]
        if names:
            raise DeploymentError(names, verb="Diff")
        return path

    def find_stack(self, name: str, region: str) -> Tuple[Region, StackSpec]:
        """Look up a stack of the manifest by name and region.

        Raises:
            CfstackError: The manifest has no such stack
        """
        manifest_region = self.manifest.find_region(region)
        spec = manifest_region.find_stack(name) if manifest_region else None
        if spec is None:
            raise CfstackError(
                f"{name} stack from {region} region was not found in manifest file {self.manifest.path}"
            )
        return manifest_region, spec

    def deploy_stack(self, name: str, region: str) -> None:
        """Deploy a single stack of the manifest."""
        manifest_region, spec = self.find_stack(name, region)
        progress.info("==> %s  Deploying stack %s in region %s", ROCKET, name, region)

        run = self.run_context(parallel=False)
        context = self.setup(manifest_region.name, run)
        try:
            StackRunner(StackJob(spec=spec, region=context, run=run)).deploy()
        except Exception as e:
            progress.error("    %s", e)
            raise CfstackError(f"{name} stack deployment has failed") from e

    def delete(self) -> None:
        """Delete every stack of the manifest, region by region.

        Stops at the first failure.
        """
        run = self.run_context(parallel=False)
        for manifest_region in self.manifest.regions:
            context = self.context_factory(manifest_region.name, run)
            for spec in manifest_region.stacks:
                self._delete(spec, context, run)

    def delete_stack(self, name: str, region: str) -> None:
        """Delete a single stack of the manifest."""
        manifest_region, spec = self.find_stack(name, region)
        run = self.run_context(parallel=False)
        self._delete(spec, self.context_factory(manifest_region.name, run), run)

    def _delete(self, spec: StackSpec, context: RegionContext, run: RunContext) -> None:
        progress.info("==> %s  Deleting stack %s in region %s", KNIFE, spec.name, context.name)
        StackRunner(StackJob(spec=spec, region=context, run=run)).delete()


class InitStack:
    """Create or update the init stack holding cfstack's buckets and role."""

    def __init__(self, context: RegionContext):
        self.context = context
        self.client = context.client
        self.poller = context.run.poller
        self.settings = context.run.settings
        self.stack_name = self.settings.init_stack_name

    def _call(self, operation: Callable, rules=TRANSIENT_RULES, on_expected=None):
        return self.poller.run(
            operation,
            interval=self.settings.call_interval,
            subject=f"stack {self.stack_name}",
            rules=rules,
            on_expected=on_expected,
        )

    def run(self) -> None:
        body = init_template_body()
        region = self.context.name

        progress.info("    Checking if %s already exists in %s", self.stack_name, region)
        exists = self.poller.run(
            lambda: self.client.exists(self.stack_name),
            interval=self.settings.exists_interval,
            subject=f"stack {self.stack_name}",
            rules=EXISTS_RULES,
            on_expected=False,
        )

        if not exists:
            progress.info("    %s not found in %s. Creating new stack", self.stack_name, region)
            self._call(
                lambda: self.client.create_stack(
                    self.stack_name,
                    [],
                    list(BASE_CAPABILITIES),
                    template_body=body,
                    stack_policy=INIT_STACK_POLICY,
                )
            )
            self.context.tracker.wait(self.stack_name, CREATE)
            progress.info("    %s stack has been created", self.stack_name)
            return

        progress.info("    %s stack found in %s. Checking for changes", self.stack_name, region)
        changes = self.context.differ.get_stack_changes(
            ChangeSetRequest(
                stack_name=self.stack_name,
                change_set_name=change_set_name(str(uuid.uuid4()), self.stack_name),
                change_set_type=UPDATE,
                parameters=[],
                capabilities=list(BASE_CAPABILITIES),
                template_body=body,
                stack_policy=INIT_STACK_POLICY,
            )
        )

        if changes.stack_policy_change:
            progress.info("    Changes in stack policy detected, it will be updated first")
            self._call(lambda: self.client.set_stack_policy(self.stack_name, INIT_STACK_POLICY) or True)
            progress.info("    Stack policy updated")

        if not changes.resources and not changes.force_update:
            progress.info("    No resource changes detected in stack %s", self.stack_name)
            return

        submitted = self._call(
            lambda: self.client.update_stack(
                self.stack_name, [], list(BASE_CAPABILITIES), template_body=body
            )
            or True,
            rules=DEFAULT_RULES,
            on_expected=False,
        )
        if submitted:
            self.context.tracker.wait(self.stack_name, UPDATE)
        progress.info("    %s stack has been updated", self.stack_name)


def init_region(
    region: str,
    settings: Optional[Settings] = None,
    profile: Optional[str] = None,
    session_factory=create_session,
    poller=None,
) -> None:
    """Create or update the init stack in a region."""
    settings = settings or get_settings()
    run = RunContext(
        settings=settings,
        profile=profile if profile is not None else settings.profile,
        session_factory=session_factory,
        poller=poller,
    )
    InitStack(RegionContext(region, run)).run()
