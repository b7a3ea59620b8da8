"""
Values document for ``{{name}}`` parameter references.

The document is keyed region -> stack -> value name::

    {"us-east-1": {"network": {"VpcCidr": "10.0.0.0/16"}}}
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from cloudformation.errors import CfstackError, ParameterValueNotFound

logger = logging.getLogger(__name__)


class ValuesStore:
    """Read-only lookup of parameter values, shared by all workers of a run."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = data or {}

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> "ValuesStore":
        """Load a JSON or YAML values file. A missing file gives an empty store."""
        if path is None:
            return cls()

        values_file = Path(path)
        if not values_file.exists():
            logger.info("Values file %s not found, parameters must be literal", values_file)
            return cls()

        with open(values_file, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise CfstackError(f"Cannot parse values file {values_file}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise CfstackError(f"Values file {values_file} must contain a mapping")
        return cls(data)

    def lookup(self, region: str, stack_name: str, name: str) -> str:
        """Return the value for ``name`` scoped to a region and stack.

        Raises:
            ParameterValueNotFound: No scalar value exists at that path
        """
        node: Any = self._data
        for key in (region, stack_name, name):
            if not isinstance(node, dict) or key not in node:
                raise ParameterValueNotFound(region, stack_name, name)
            node = node[key]

        if isinstance(node, bool):
            return "true" if node else "false"
        if isinstance(node, (str, int, float)):
            return str(node)
        raise ParameterValueNotFound(region, stack_name, name)
