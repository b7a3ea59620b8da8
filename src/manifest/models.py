"""
Manifest data model.

Specs are immutable once loaded. Anything that belongs to a single run (the
run id, the templates bucket, the region session) travels next to a spec in
a ``StackJob`` instead of being written onto it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"

ACTIONS = (CREATE, UPDATE, DELETE)


@dataclass(frozen=True)
class StackSpec:
    """Desired state of one stack in one region."""

    name: str
    template_path: Optional[str] = None
    template_url: Optional[str] = None
    action: str = CREATE
    stack_policy: Mapping[str, Any] = field(default_factory=dict)
    parameters: Mapping[str, str] = field(default_factory=dict)
    deployment_order: int = 0
    role_arn: Optional[str] = None

    @property
    def is_delete(self) -> bool:
        return self.action == DELETE

    def to_dict(self) -> Dict[str, Any]:
        """Manifest representation of the stack."""
        data: Dict[str, Any] = {
            "StackName": self.name,
            "TemplatePath": self.template_path or "",
            "TemplateUrl": self.template_url or "",
            "Action": self.action,
            "StackPolicy": dict(self.stack_policy),
            "Parameters": dict(self.parameters),
            "DeploymentOrder": self.deployment_order,
        }
        if self.role_arn:
            data["RoleArn"] = self.role_arn
        return data


@dataclass(frozen=True)
class Region:
    name: str
    stacks: Tuple[StackSpec, ...] = ()

    def find_stack(self, name: str) -> Optional[StackSpec]:
        for spec in self.stacks:
            if spec.name == name:
                return spec
        return None


@dataclass(frozen=True)
class Manifest:
    """Ordered regions, each with ordered stacks."""

    regions: Tuple[Region, ...]
    parallel: bool = False
    path: Optional[Path] = None

    @property
    def templates_root(self) -> Path:
        """Directory relative template and values paths resolve against."""
        if self.path is None:
            return Path.cwd()
        return self.path.resolve().parent

    @property
    def region_names(self) -> Tuple[str, ...]:
        return tuple(region.name for region in self.regions)

    def find_region(self, name: str) -> Optional[Region]:
        for region in self.regions:
            if region.name == name:
                return region
        return None
