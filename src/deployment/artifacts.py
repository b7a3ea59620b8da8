"""
Artifact store for templates and packaged function code.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import boto3

logger = logging.getLogger(__name__)


def template_key(uid: str, template_path: str) -> str:
    """Object key of a run's copy of a template."""
    return f"{uid}/{template_path.lstrip('/')}"


def template_url(region: str, bucket: str, uid: str, template_path: str) -> str:
    """HTTPS URL CloudFormation reads an uploaded template from.

    ``us-east-1`` has no dashed ``s3-<region>`` endpoint, so its URL uses the
    dotted form.
    """
    url = f"https://s3-{region}.amazonaws.com/{bucket}/{template_key(uid, template_path)}"
    if region == "us-east-1":
        url = url.replace("https://s3-", "https://s3.", 1)
    return url


class ArtifactStore:
    """Uploads run artifacts to S3 in one region."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        session: Optional[boto3.Session] = None,
    ):
        if session is None:
            session_args = {"region_name": region or "us-east-1"}
            if profile:
                session_args["profile_name"] = profile
            session = boto3.Session(**session_args)

        self.region = region or session.region_name
        self.s3 = session.client("s3")

    def upload(self, bucket: str, key: str, body: bytes) -> None:
        self.s3.put_object(Bucket=bucket, Key=key, Body=body)
        logger.debug("Uploaded s3://%s/%s", bucket, key)

    def upload_file(self, bucket: str, key: str, path: Union[str, Path]) -> None:
        with open(path, "rb") as f:
            self.upload(bucket, key, f.read())
