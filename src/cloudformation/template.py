"""
CloudFormation template loading and introspection.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml

SERVERLESS_TRANSFORM = "AWS::Serverless-2016-10-31"
SERVERLESS_FUNCTION = "AWS::Serverless::Function"


class CloudFormationYAMLLoader(yaml.SafeLoader):
    """YAML loader that expands CloudFormation short-form intrinsic functions."""

    pass


def cfn_tag_constructor(loader, tag_suffix, node):
    """Construct the long form (``{"Fn::Sub": ...}``) of a short-form tag."""
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
        if tag_suffix == "GetAtt" and isinstance(value, str):
            value = value.split(".", 1)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    elif isinstance(node, yaml.MappingNode):
        value = loader.construct_mapping(node, deep=True)
    else:
        raise yaml.constructor.ConstructorError(
            None, None,
            f"could not determine a constructor for the tag '!{tag_suffix}'",
            node.start_mark)

    key = tag_suffix if tag_suffix in ("Ref", "Condition") else f"Fn::{tag_suffix}"
    return {key: value}


INTRINSIC_TAGS = [
    'Ref', 'GetAtt', 'GetAZs', 'ImportValue', 'Join', 'Select',
    'Split', 'Sub', 'Transform', 'Base64', 'Cidr', 'FindInMap',
    'Condition', 'Equals', 'If', 'Not', 'And', 'Or'
]

for tag in INTRINSIC_TAGS:
    CloudFormationYAMLLoader.add_constructor(
        f'!{tag}',
        lambda loader, node, tag=tag: cfn_tag_constructor(loader, tag, node)
    )


def load_template(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a JSON or YAML template into a dictionary."""
    with open(path, "r") as f:
        if Path(path).suffix == ".json":
            template = json.load(f)
        else:
            template = yaml.load(f, Loader=CloudFormationYAMLLoader)
    if not isinstance(template, dict):
        raise ValueError(f"Template {path} is not a mapping")
    return template


def dump_template(template: Dict[str, Any]) -> str:
    return json.dumps(template, indent=2)


def serverless_functions(template: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Return the AWS::Serverless::Function resources of a template by name."""
    resources = template.get("Resources") or {}
    return {
        name: resource
        for name, resource in resources.items()
        if isinstance(resource, dict) and resource.get("Type") == SERVERLESS_FUNCTION
    }


def is_serverless_template(template: Dict[str, Any]) -> bool:
    """A template is serverless when it uses the SAM transform and has functions."""
    transform = template.get("Transform")
    if isinstance(transform, str):
        transforms = [transform]
    elif isinstance(transform, list):
        transforms = transform
    else:
        return False

    return SERVERLESS_TRANSFORM in transforms and bool(serverless_functions(template))
