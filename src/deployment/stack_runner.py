"""
Per-stack state machine.

A stack goes through template upload, validation and an existence check, then
is created, updated through the changeset protocol, deleted or skipped, and
finally tracked until its status settles. Each step raises on failure; the
worker turns the exception into the stack's result.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from cloudformation.changeset import ChangeSetRequest, ChangeSetResult, DiffStatus, change_set_name
from cloudformation.errors import (
    DEFAULT_RULES,
    EXISTS_RULES,
    TRANSIENT_RULES,
    RemoteAPIError,
    StackOperationError,
)
from cloudformation.parameters import resolve_parameters
from cloudformation.stack_client import capabilities_for
from cloudformation.status import CREATE, DELETE, UPDATE
from cloudformation.template import is_serverless_template, load_template
from lambda_utils.packager import ServerlessPackager

from .artifacts import template_key, template_url
from .context import StackJob

logger = logging.getLogger(__name__)
progress = logging.getLogger("cfstack.progress")

ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"


def is_stack_busy(error: RemoteAPIError) -> bool:
    """The stack has an operation in progress and cannot be changed now."""
    return error.code == "ValidationError" and "IN_PROGRESS" in error.message


class StackRunner:
    """Drive one stack job to completion."""

    def __init__(self, job: StackJob, quiet: bool = False):
        self.job = job
        self.spec = job.spec
        self.region = job.region
        self.run = job.run
        self.client = job.region.client
        self.poller = job.run.poller
        self.settings = job.run.settings
        self.quiet = quiet

    @property
    def subject(self) -> str:
        return f"stack {self.spec.name}"

    @property
    def role_arn(self) -> Optional[str]:
        """Service role for stack operations; the stack's own role wins over the run's."""
        return self.spec.role_arn or self.run.role_arn

    def say(self, message: str, *args) -> None:
        """Per-stack progress line, suppressed in quiet (parallel) mode."""
        if self.quiet:
            logger.debug(message.strip(), *args)
        else:
            progress.info(message, *args)

    # Entry points. Each attempt is retried at the worker interval while it
    # fails with transient remote errors.

    def deploy(self) -> bool:
        return self._retrying(self.deploy_once, on_expected=True)

    def diff(self) -> ChangeSetResult:
        return self._retrying(self.diff_once, on_expected=ChangeSetResult(status=DiffStatus.NO_OP))

    def delete(self) -> bool:
        return self._retrying(self.delete_once, on_expected=True)

    def _retrying(self, attempt, on_expected):
        return self.poller.run(
            attempt,
            interval=self.settings.retry_interval,
            subject=self.subject,
            rules=DEFAULT_RULES,
            on_expected=on_expected,
        )

    # Steps

    def deploy_once(self) -> bool:
        url, serverless = self.prepare_template()
        self.validate(url)

        exists = self.stack_exists()
        if self.spec.is_delete:
            if exists:
                self._delete_stack()
            else:
                self.say("    There is no stack %s in region %s to delete", self.spec.name, self.region.name)
        elif exists:
            self.update(url, serverless)
        else:
            self.create(url, serverless)
        return True

    def diff_once(self) -> ChangeSetResult:
        url, serverless = self.prepare_template()
        self.validate(url)

        change_set_type = UPDATE if self.stack_exists() else CREATE
        return self.region.differ.get_stack_changes(self._change_set_request(url, serverless, change_set_type))

    def delete_once(self) -> bool:
        if self.stack_exists():
            self._delete_stack()
        else:
            progress.info("    Stack %s does not exist in region %s", self.spec.name, self.region.name)
        return True

    def prepare_template(self) -> Tuple[str, bool]:
        """Upload the template (packaging serverless code first) and return its URL.

        Returns:
            Template URL and whether the template is serverless
        """
        if self.spec.template_url:
            return self.spec.template_url, False

        template_file = self._template_file()
        template = load_template(template_file)
        serverless = is_serverless_template(template)

        upload_file = template_file
        if serverless:
            self.say("    Packing serverless stack %s", self.spec.name)
            packager = ServerlessPackager(self.region.store, self.region.source_bucket, self.region.name)
            upload_file = packager.package_template(template_file, template)

        bucket = self.region.resolve_templates_bucket()
        key = template_key(self.run.uid, self.spec.template_path)
        try:
            self.region.store.upload_file(bucket, key, upload_file)
        except Exception:
            logger.error("Template upload for stack %s failed", self.spec.name)
            raise

        return template_url(self.region.name, bucket, self.run.uid, self.spec.template_path), serverless

    def _template_file(self) -> Path:
        path = Path(self.spec.template_path)
        if path.is_absolute():
            return path
        return self.run.templates_root / path

    def validate(self, url: str) -> None:
        try:
            self.poller.run(
                lambda: self.client.validate_template(template_url=url),
                interval=self.settings.call_interval,
                subject=self.subject,
                rules=TRANSIENT_RULES,
            )
        except RemoteAPIError:
            logger.warning("Template validation error for stack %s", self.spec.name)
            raise

    def stack_exists(self) -> bool:
        return self.poller.run(
            lambda: self.client.exists(self.spec.name),
            interval=self.settings.exists_interval,
            subject=self.subject,
            rules=EXISTS_RULES,
            on_expected=False,
        )

    def create(self, url: str, serverless: bool) -> None:
        self.say("    Stack doesn't exist, creating a new one")
        parameters = self._parameters()

        self._submit(
            lambda: self.client.create_stack(
                self.spec.name,
                parameters,
                capabilities_for(serverless),
                template_url=url,
                stack_policy=dict(self.spec.stack_policy),
                role_arn=self.role_arn,
            )
        )

        try:
            self.region.tracker.wait(self.spec.name, CREATE)
        except StackOperationError as e:
            if e.status == ROLLBACK_COMPLETE:
                progress.info("    Deleting stack %s after failed create", self.spec.name)
                try:
                    self._delete_stack()
                except Exception:
                    logger.error("Delete of stack %s after failed create has failed", self.spec.name, exc_info=True)
                    raise e
            raise

        self.say("    Stack create complete")

    def update(self, url: str, serverless: bool) -> None:
        self.say("    Stack exists, will check for updates")

        request = self._change_set_request(url, serverless, UPDATE)
        try:
            changes = self.region.differ.get_stack_changes(request)
        except RemoteAPIError as e:
            if is_stack_busy(e):
                logger.warning("Skipping update of stack %s: %s", self.spec.name, e.message)
                return
            raise

        if changes.stack_policy_change:
            self.say("    Changes in %s stack policy detected, it will be updated first", self.spec.name)
            self._submit(lambda: self.client.set_stack_policy(self.spec.name, dict(self.spec.stack_policy)))
            self.say("    Stack policy updated")

        if not changes.resources and not changes.force_update:
            self.say("    No resource changes detected for stack, skipping update..")
            return

        self.say("    Changes in %s resources detected, waiting for update to finish", self.spec.name)
        submitted = self.poller.run(
            lambda: self.client.update_stack(
                self.spec.name,
                request.parameters,
                request.capabilities,
                template_url=url,
                role_arn=self.role_arn,
            )
            or True,
            interval=self.settings.call_interval,
            subject=self.subject,
            rules=DEFAULT_RULES,
            on_expected=False,
        )
        if not submitted:
            self.say("    No updates are to be performed for stack %s", self.spec.name)
            return

        self.region.tracker.wait(self.spec.name, UPDATE)
        self.say("    Stack update complete")

    def _delete_stack(self) -> None:
        self._submit(lambda: self.client.delete_stack(self.spec.name, role_arn=self.role_arn))
        self.region.tracker.wait(self.spec.name, DELETE)
        progress.info("    Stack %s delete complete", self.spec.name)

    def _submit(self, call) -> None:
        self.poller.run(
            lambda: call() or True,
            interval=self.settings.call_interval,
            subject=self.subject,
            rules=TRANSIENT_RULES,
        )

    def _parameters(self):
        return resolve_parameters(
            self.spec.parameters, self.region.name, self.spec.name, self.run.values
        )

    def _change_set_request(self, url: Optional[str], serverless: bool, change_set_type: str) -> ChangeSetRequest:
        return ChangeSetRequest(
            stack_name=self.spec.name,
            change_set_name=change_set_name(self.run.uid, self.spec.name),
            change_set_type=change_set_type,
            parameters=self._parameters(),
            capabilities=capabilities_for(serverless),
            template_url=url,
            stack_policy=dict(self.spec.stack_policy),
            role_arn=self.role_arn,
        )
