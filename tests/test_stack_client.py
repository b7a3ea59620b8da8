"""
Tests for CloudFormation stack client functionality.
"""

import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from cloudformation.errors import CfstackError
from cloudformation.stack_client import StackClient, capabilities_for
from conftest import client_error


class TestStackClient:
    """Test CloudFormation stack operations."""

    def create_client(self):
        """Create a test client with a mocked CloudFormation client."""
        with patch("boto3.Session"):
            client = StackClient(region="us-east-1")
            client.cloudformation = Mock()
            return client

    def test_profile_is_passed_to_session(self) -> None:
        """Test that the profile selects the session."""
        with patch("boto3.Session") as mock_session:
            StackClient(region="eu-west-1", profile="prod")

        mock_session.assert_called_once_with(region_name="eu-west-1", profile_name="prod")

    def test_exists(self) -> None:
        """Test an existing stack."""
        client = self.create_client()
        client.cloudformation.describe_stacks.return_value = {
            "Stacks": [{"StackName": "app", "StackStatus": "CREATE_COMPLETE"}]
        }

        assert client.exists("app") is True
        client.cloudformation.describe_stacks.assert_called_once_with(StackName="app")

    def test_review_in_progress_does_not_exist(self) -> None:
        """Test that a stack only holding a CREATE changeset is not reported."""
        client = self.create_client()
        client.cloudformation.describe_stacks.return_value = {
            "Stacks": [{"StackName": "app", "StackStatus": "REVIEW_IN_PROGRESS"}]
        }

        assert client.exists("app") is False

    def test_missing_stack_raises(self) -> None:
        """Test that a missing stack error is left to the caller."""
        client = self.create_client()
        client.cloudformation.describe_stacks.side_effect = client_error(
            "ValidationError", "Stack with id app does not exist"
        )

        with pytest.raises(ClientError) as exc_info:
            client.exists("app")
        assert "does not exist" in str(exc_info.value)

    def test_create_stack_with_policy(self) -> None:
        """Test stack creation with a policy and role."""
        client = self.create_client()
        policy = {"Statement": [{"Effect": "Allow", "Action": "Update:*", "Principal": "*", "Resource": "*"}]}

        client.create_stack(
            "app",
            parameters=[{"ParameterKey": "Env", "ParameterValue": "dev"}],
            capabilities=capabilities_for(False),
            template_url="https://s3.amazonaws.com/bucket/t.yaml",
            stack_policy=policy,
            role_arn="arn:aws:iam::123456789012:role/deployer",
        )

        client.cloudformation.create_stack.assert_called_once_with(
            StackName="app",
            Parameters=[{"ParameterKey": "Env", "ParameterValue": "dev"}],
            Capabilities=["CAPABILITY_NAMED_IAM"],
            TemplateURL="https://s3.amazonaws.com/bucket/t.yaml",
            StackPolicyBody=json.dumps(policy),
            RoleARN="arn:aws:iam::123456789012:role/deployer",
        )

    def test_create_stack_without_policy(self) -> None:
        """Test that an empty policy is never pushed."""
        client = self.create_client()

        client.create_stack("app", [], capabilities_for(True), template_body="{}", stack_policy={})

        kwargs = client.cloudformation.create_stack.call_args.kwargs
        assert "StackPolicyBody" not in kwargs
        assert "RoleARN" not in kwargs
        assert kwargs["Capabilities"] == ["CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"]
        assert kwargs["TemplateBody"] == "{}"

    def test_template_source_required(self) -> None:
        """Test that a template source is mandatory."""
        client = self.create_client()

        with pytest.raises(ValueError):
            client.update_stack("app", [], capabilities_for(False))

    def test_describe_change_set_follows_pages(self) -> None:
        """Test that every page of changes is collected."""
        client = self.create_client()
        client.cloudformation.describe_change_set.side_effect = [
            {"Status": "CREATE_PENDING", "Changes": [{"Type": "Resource"}], "NextToken": "t1"},
            {"Status": "CREATE_COMPLETE", "Changes": [{"Type": "Resource"}]},
        ]

        result = client.describe_change_set("app", "cs")

        assert result["status"] == "CREATE_COMPLETE"
        assert len(result["changes"]) == 2
        second = client.cloudformation.describe_change_set.call_args_list[1]
        assert second.kwargs["NextToken"] == "t1"

    def test_describe_stack_status(self) -> None:
        """Test reading status and reason."""
        client = self.create_client()
        client.cloudformation.describe_stacks.return_value = {
            "Stacks": [
                {
                    "StackName": "app",
                    "StackStatus": "ROLLBACK_IN_PROGRESS",
                    "StackStatusReason": "Resource creation cancelled",
                }
            ]
        }

        assert client.describe_stack_status("app") == (
            "ROLLBACK_IN_PROGRESS",
            "Resource creation cancelled",
        )

    def test_get_stack_policy(self) -> None:
        """Test reading a stack policy."""
        client = self.create_client()
        client.cloudformation.get_stack_policy.return_value = {"StackPolicyBody": '{"Statement": []}'}
        assert client.get_stack_policy("app") == {"Statement": []}

        client.cloudformation.get_stack_policy.return_value = {}
        assert client.get_stack_policy("app") is None

    def test_physical_resource_id_missing_init_stack(self) -> None:
        """Test the hint given when the init stack is missing."""
        client = self.create_client()
        client.cloudformation.describe_stack_resource.side_effect = client_error(
            "ValidationError", "Stack 'cfstack-Init' does not exist", "DescribeStackResource"
        )

        with pytest.raises(CfstackError) as exc_info:
            client.get_physical_resource_id("cfstack-Init", "TemplatesS3Bucket")

        assert "run 'cfstack init' for this region first" in str(exc_info.value)

    def test_physical_resource_id(self) -> None:
        """Test resolving a physical resource id."""
        client = self.create_client()
        client.cloudformation.describe_stack_resource.return_value = {
            "StackResourceDetail": {"PhysicalResourceId": "cfstack-templates-abc"}
        }

        assert client.get_physical_resource_id("cfstack-Init", "TemplatesS3Bucket") == "cfstack-templates-abc"
