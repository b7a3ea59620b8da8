"""Manifest file loading and validation."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

import boto3
import jsonschema
import yaml

from cloudformation.errors import ManifestError

from .models import ACTIONS, CREATE, Manifest, Region, StackSpec

logger = logging.getLogger(__name__)
progress = logging.getLogger("cfstack.progress")

SCALAR = {"type": ["string", "number", "boolean"]}

MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["Regions"],
    "properties": {
        "ParallelDeployment": {"type": "boolean"},
        "Regions": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["Name", "Stacks"],
                "properties": {
                    "Name": {"type": "string", "minLength": 1},
                    "Stacks": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["StackName"],
                            "anyOf": [
                                {"required": ["TemplatePath"], "properties": {"TemplatePath": {"minLength": 1}}},
                                {"required": ["TemplateUrl"], "properties": {"TemplateUrl": {"minLength": 1}}},
                            ],
                            "properties": {
                                "StackName": {"type": "string", "minLength": 1},
                                "TemplatePath": {"type": "string"},
                                "TemplateUrl": {"type": "string"},
                                "Action": {"enum": list(ACTIONS)},
                                "StackPolicy": {"type": ["object", "null"]},
                                "Parameters": {
                                    "type": ["object", "null"],
                                    "additionalProperties": SCALAR,
                                },
                                "RoleArn": {"type": "string"},
                            },
                        },
                    },
                },
            },
        },
    },
}


@lru_cache(maxsize=1)
def known_regions() -> FrozenSet[str]:
    """All region ids CloudFormation is available in, across partitions."""
    session = boto3.Session()
    regions = set()
    for partition in session.get_available_partitions():
        regions.update(session.get_available_regions("cloudformation", partition_name=partition))
    return frozenset(regions)


def _path_key(path: Iterable[Any]):
    return tuple((0, p) if isinstance(p, int) else (1, str(p)) for p in path)


def _lookup(document: Any, path: Iterable[Any]) -> Any:
    node = document
    for part in path:
        node = node[part]
    return node


def _describe(error: jsonschema.ValidationError, document: Dict[str, Any]) -> str:
    """Turn a schema error into the message a manifest author expects."""
    path = list(error.absolute_path)

    if not path and error.validator == "required":
        return "No Regions found"
    if path == ["Regions"] and error.validator in ("minItems", "type"):
        return "No Regions found"

    if len(path) >= 2 and path[0] == "Regions":
        index = path[1]
        region = _lookup(document, path[:2])
        region_name = region.get("Name", "") if isinstance(region, dict) else ""

        if len(path) == 2 and error.validator == "required":
            if "Name" not in region:
                return f"Region name is missing for {index} element"
            return f"Missing field Stacks for region {region_name}"
        if path[2:] == ["Name"]:
            return f"Region name is missing for {index} element"

        if len(path) >= 4 and path[2] == "Stacks":
            stack_index = path[3]
            stack = _lookup(document, path[:4])
            stack_name = stack.get("StackName", "") if isinstance(stack, dict) else ""

            if len(path) == 4 and error.validator == "required":
                return f"Stack name is missing for {stack_index} element"
            if path[4:] == ["StackName"]:
                return f"Stack name is missing for {stack_index} element"
            if len(path) == 4 and error.validator == "anyOf":
                return f"Missing field TemplatePath for stack {stack_name} in Region {region_name}"
            if len(path) > 4:
                return (
                    f"Invalid field {path[4]} for stack {stack_name} in Region {region_name}: "
                    f"{error.message}"
                )

    location = "/".join(str(p) for p in path) or "manifest"
    return f"Invalid manifest at {location}: {error.message}"


def validate_document(document: Any, regions: Optional[FrozenSet[str]] = None) -> None:
    """Validate a parsed manifest document.

    Raises:
        ManifestError: The first problem found, in document order
    """
    if not isinstance(document, dict):
        raise ManifestError("No Regions found")

    validator = jsonschema.Draft7Validator(MANIFEST_SCHEMA)
    errors = sorted(validator.iter_errors(document), key=lambda e: _path_key(e.absolute_path))
    if errors:
        for error in errors:
            logger.debug("Manifest validation error: %s", error.message)
        raise ManifestError(_describe(errors[0], document))

    valid_regions = known_regions() if regions is None else regions
    for region in document["Regions"]:
        if region["Name"] not in valid_regions:
            raise ManifestError(f"{region['Name']} is not a valid region")


def _build_stack(data: Dict[str, Any], order: int) -> StackSpec:
    parameters = data.get("Parameters") or {}
    return StackSpec(
        name=data["StackName"],
        template_path=data.get("TemplatePath") or None,
        template_url=data.get("TemplateUrl") or None,
        action=data.get("Action") or CREATE,
        stack_policy=dict(data.get("StackPolicy") or {}),
        parameters={key: _scalar(value) for key, value in parameters.items()},
        deployment_order=order,
        role_arn=data.get("RoleArn") or None,
    )


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_manifest(
    document: Any,
    path: Optional[Path] = None,
    regions: Optional[FrozenSet[str]] = None,
) -> Manifest:
    """Build a Manifest from a parsed document, assigning deployment order."""
    validate_document(document, regions)

    built: List[Region] = []
    for region in document["Regions"]:
        stacks = tuple(_build_stack(stack, i) for i, stack in enumerate(region["Stacks"]))
        built.append(Region(name=region["Name"], stacks=stacks))

    return Manifest(
        regions=tuple(built),
        parallel=bool(document.get("ParallelDeployment", False)),
        path=path,
    )


def load_manifest(
    path: Union[str, Path], regions: Optional[FrozenSet[str]] = None
) -> Manifest:
    """Read and validate a JSON or YAML manifest file.

    Args:
        path: Manifest file
        regions: Valid region ids, defaults to the ones botocore knows

    Raises:
        ManifestError: The manifest cannot be read or is invalid
    """
    manifest_file = Path(path)
    progress.info("==> 📃  Parsing manifest file %s", manifest_file.name)

    try:
        with open(manifest_file, "r") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read manifest file {manifest_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Cannot parse manifest file {manifest_file}: {e}") from e

    return parse_manifest(document, manifest_file, regions)
