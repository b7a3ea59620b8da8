"""
Run-scoped context handed to region and stack workers.

Manifest specs stay frozen; what a worker needs beyond its StackSpec (run id,
region clients, the templates bucket) is carried by these objects.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import boto3

from cloudformation.changeset import ChangeSetDiffer
from cloudformation.errors import TRANSIENT_RULES
from cloudformation.poller import Poller
from cloudformation.stack_client import StackClient
from cloudformation.status import StackStatusTracker
from config import Settings
from manifest.models import StackSpec
from manifest.values import ValuesStore

from .artifacts import ArtifactStore

logger = logging.getLogger(__name__)


def create_session(region: str, profile: Optional[str] = None) -> boto3.Session:
    """Create AWS session for a region.

    The ``default`` profile is the SDK default, so it is not named explicitly
    and environment credentials keep working.
    """
    session_args = {"region_name": region}
    if profile and profile != "default":
        session_args["profile_name"] = profile
    return boto3.Session(**session_args)


@dataclass
class RunContext:
    """Everything shared by all workers of one command invocation."""

    settings: Settings
    values: ValuesStore = field(default_factory=ValuesStore)
    templates_root: Path = field(default_factory=Path.cwd)
    profile: Optional[str] = None
    role_arn: Optional[str] = None
    workers: int = 50
    parallel: bool = False
    uid: str = field(default_factory=lambda: str(uuid.uuid4()))
    session_factory: Callable[[str, Optional[str]], boto3.Session] = create_session
    poller: Optional[Poller] = None

    def __post_init__(self):
        if self.poller is None:
            self.poller = Poller(deadline=self.settings.poll_deadline)

    @property
    def stack_workers(self) -> int:
        return self.workers if self.parallel else 1


class RegionContext:
    """Clients and buckets for one region, shared read-only by its stack workers."""

    def __init__(
        self,
        name: str,
        run: RunContext,
        client: Optional[StackClient] = None,
        store: Optional[ArtifactStore] = None,
    ):
        self.name = name
        self.run = run

        if client is None or store is None:
            session = run.session_factory(name, run.profile)
            client = client or StackClient(region=name, session=session)
            store = store or ArtifactStore(region=name, session=session)

        self.client = client
        self.store = store

        settings = run.settings
        self.differ = ChangeSetDiffer(
            client, run.poller, settings.call_interval, settings.changeset_interval
        )
        self.tracker = StackStatusTracker(client, run.poller, settings.status_interval)

        self.templates_bucket: Optional[str] = None
        self._source_bucket: Optional[str] = None
        self._lock = threading.Lock()

    def init_resource(self, logical_id: str) -> str:
        """Physical id of a resource of the init stack."""
        settings = self.run.settings
        return self.run.poller.run(
            lambda: self.client.get_physical_resource_id(settings.init_stack_name, logical_id),
            interval=settings.call_interval,
            subject=f"stack {settings.init_stack_name} in {self.name}",
            rules=TRANSIENT_RULES,
        )

    def resolve_templates_bucket(self) -> str:
        if self.templates_bucket is None:
            self.templates_bucket = self.init_resource(self.run.settings.templates_bucket_resource)
            logger.debug("Templates bucket in %s: %s", self.name, self.templates_bucket)
        return self.templates_bucket

    @property
    def source_bucket(self) -> str:
        """Bucket for packaged function code, looked up on first use."""
        with self._lock:
            if self._source_bucket is None:
                self._source_bucket = self.init_resource(self.run.settings.source_bucket_resource)
            return self._source_bucket


@dataclass(frozen=True)
class StackJob:
    """One stack to process, owned by exactly one worker."""

    spec: StackSpec
    region: RegionContext
    run: RunContext

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def order(self) -> int:
        return self.spec.deployment_order

    @property
    def region_name(self) -> str:
        return self.region.name
