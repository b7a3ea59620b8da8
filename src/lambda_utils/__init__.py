"""Serverless function packaging utilities."""

from .packager import ServerlessPackager, create_archive

__all__ = ["ServerlessPackager", "create_archive"]
