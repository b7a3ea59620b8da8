"""
Stack parameter resolution.

Manifest parameters are either literal values or ``{{name}}`` references that
are looked up in the values document, scoped by region and stack.
"""

from typing import Dict, List, Mapping, Optional

from .errors import ParameterValueNotFound


def reference_name(value: str) -> Optional[str]:
    """Return the referenced value name for ``{{ name }}``, else None."""
    if len(value) >= 4 and value.startswith("{{") and value.endswith("}}"):
        return value[2:-2].strip()
    return None


def resolve_parameters(
    parameters: Mapping[str, str], region: str, stack_name: str, values
) -> List[Dict[str, str]]:
    """Resolve parameters into the CloudFormation ``Parameters`` list.

    Args:
        parameters: Parameter name to raw value or ``{{name}}`` reference
        region: Region the stack is deployed in
        stack_name: Stack the parameters belong to
        values: ValuesStore used for references

    Raises:
        ParameterValueNotFound: A reference has no value
    """
    resolved = []
    for key, raw in parameters.items():
        value = str(raw)
        name = reference_name(value)
        if name is not None:
            if values is None:
                raise ParameterValueNotFound(region, stack_name, name, key)
            try:
                value = values.lookup(region, stack_name, name)
            except ParameterValueNotFound as e:
                raise ParameterValueNotFound(region, stack_name, name, key) from e
        resolved.append({"ParameterKey": key, "ParameterValue": value})
    return resolved
