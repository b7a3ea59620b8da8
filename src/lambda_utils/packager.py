"""Package serverless function code referenced by a template."""

import copy
import logging
import os
import tempfile
import uuid
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from cloudformation.template import dump_template, load_template, serverless_functions

logger = logging.getLogger(__name__)

SKIP_DIRS = [".git", ".pytest_cache", "__pycache__", ".aws-sam"]
SKIP_SUFFIXES = (".pyc", ".pyo", ".DS_Store")


def resolve_code_path(template_dir: Path, code_uri: str) -> Path:
    path = Path(code_uri)
    if path.is_absolute():
        return path
    return (template_dir / path).resolve()


def is_local_code_uri(code_uri: Any) -> bool:
    """CodeUri values that point to S3 are left alone."""
    return isinstance(code_uri, str) and bool(code_uri) and not code_uri.startswith("s3://")


def create_archive(source: Path, output_file: Path) -> Path:
    """Zip a single file, or the contents of a directory, into ``output_file``.

    Args:
        source: File or directory with the function code
        output_file: Path for the output ZIP file

    Returns:
        Path to the created ZIP file
    """
    source = Path(source)
    output_file = Path(output_file)

    with zipfile.ZipFile(output_file, "w", zipfile.ZIP_DEFLATED) as zipf:
        if source.is_file():
            zipf.write(source, source.name)
        else:
            for root, dirs, files in os.walk(source):
                dirs[:] = [d for d in dirs if d not in SKIP_DIRS]

                for file in files:
                    if file.endswith(SKIP_SUFFIXES):
                        continue

                    file_path = Path(root) / file
                    zipf.write(file_path, file_path.relative_to(source))

    size_mb: float = output_file.stat().st_size / (1024 * 1024)
    logger.debug(f"Archive created: {output_file} ({size_mb:.2f} MB)")
    return output_file


class ServerlessPackager:
    """Upload function code to the source bucket and point the template at it."""

    def __init__(self, store, source_bucket: str, region: str) -> None:
        """Initialize the packager.

        Args:
            store: ArtifactStore used for uploads
            source_bucket: Bucket function code is uploaded to
            region: Region the packaged template is for
        """
        self.store = store
        self.source_bucket = source_bucket
        self.region = region

    def package_template(self, template_file: Path, template: Optional[Dict[str, Any]] = None) -> Path:
        """Package every function with a local CodeUri and write the result.

        The packaged template is written as JSON next to the original, named
        ``<region>-packaged-<file>``.

        Returns:
            Path of the packaged template
        """
        template_file = Path(template_file)
        if template is None:
            template = load_template(template_file)
        packaged = copy.deepcopy(template)

        for name, function in serverless_functions(packaged).items():
            properties = function.setdefault("Properties", {})
            code_uri = properties.get("CodeUri")
            if not is_local_code_uri(code_uri):
                continue

            code_path = resolve_code_path(template_file.parent, code_uri)
            properties["CodeUri"] = self.upload_code(code_path)
            logger.info(f"Packaged function {name} from {code_path}")

        output_file = template_file.parent / f"{self.region}-packaged-{template_file.name}"
        with open(output_file, "w") as f:
            f.write(dump_template(packaged))

        return output_file

    def upload_code(self, code_path: Path) -> str:
        """Upload the code at ``code_path`` and return its ``s3://`` URI.

        Raises:
            FileNotFoundError: The code path does not exist
        """
        if not code_path.exists():
            raise FileNotFoundError(f"Function code not found: {code_path}")

        key = f"lambda/{uuid.uuid4()}"

        if code_path.is_file() and zipfile.is_zipfile(code_path):
            self.store.upload_file(self.source_bucket, key, code_path)
        else:
            with tempfile.TemporaryDirectory() as temp_dir:
                archive = create_archive(code_path, Path(temp_dir) / "code.zip")
                self.store.upload_file(self.source_bucket, key, archive)

        return f"s3://{self.source_bucket}/{key}"
