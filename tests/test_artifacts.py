"""
Tests for the S3 artifact store.
"""

import boto3
from moto import mock_aws

from deployment.artifacts import ArtifactStore, template_key, template_url


class TestTemplateUrl:
    """Test template keys and URLs."""

    def test_key(self) -> None:
        assert template_key("run-1", "stacks/app.yaml") == "run-1/stacks/app.yaml"
        assert template_key("run-1", "/abs/app.yaml") == "run-1/abs/app.yaml"

    def test_regional_url(self) -> None:
        url = template_url("eu-west-1", "templates", "run-1", "app.yaml")
        assert url == "https://s3-eu-west-1.amazonaws.com/templates/run-1/app.yaml"

    def test_us_east_1_url(self) -> None:
        url = template_url("us-east-1", "templates", "run-1", "app.yaml")
        assert url == "https://s3.us-east-1.amazonaws.com/templates/run-1/app.yaml"


class TestArtifactStore:
    """Test uploads against a mocked S3."""

    @mock_aws
    def test_upload(self) -> None:
        """Test uploading bytes."""
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="templates")

        store = ArtifactStore(session=boto3.Session(region_name="us-east-1"))
        store.upload("templates", "run-1/app.yaml", b"Resources: {}")

        body = s3.get_object(Bucket="templates", Key="run-1/app.yaml")["Body"].read()
        assert body == b"Resources: {}"
        assert store.region == "us-east-1"

    @mock_aws
    def test_upload_file(self, tmp_path) -> None:
        """Test uploading a file."""
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="sources")
        path = tmp_path / "code.zip"
        path.write_bytes(b"PK\x05\x06" + b"\x00" * 18)

        ArtifactStore(region="us-east-1").upload_file("sources", "lambda/abc", path)

        body = s3.get_object(Bucket="sources", Key="lambda/abc")["Body"].read()
        assert body == path.read_bytes()
