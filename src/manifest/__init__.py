"""Manifest and values documents."""

from .loader import load_manifest, parse_manifest
from .models import Manifest, Region, StackSpec
from .values import ValuesStore

__all__ = ["Manifest", "Region", "StackSpec", "ValuesStore", "load_manifest", "parse_manifest"]
