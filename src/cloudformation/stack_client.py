"""
CloudFormation stack operations.

Thin wrapper over the boto3 CloudFormation client. Each method performs one
remote call and lets ``botocore`` errors propagate so that callers can
classify them through the shared rule table.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from .errors import CfstackError

REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"

BASE_CAPABILITIES = ["CAPABILITY_NAMED_IAM"]
SERVERLESS_CAPABILITIES = ["CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"]


def capabilities_for(serverless: bool) -> List[str]:
    return list(SERVERLESS_CAPABILITIES if serverless else BASE_CAPABILITIES)


def is_trivial_policy(policy: Optional[Dict[str, Any]]) -> bool:
    """An absent or empty stack policy is never pushed."""
    return not policy


class StackClient:
    """Manage CloudFormation stack operations in one region."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        session: Optional[boto3.Session] = None,
    ):
        """
        Initialize stack client.

        Args:
            region: AWS region
            profile: AWS profile to use
            session: Existing session to build the client from
        """
        if session is None:
            session_args = {"region_name": region or "us-east-1"}
            if profile:
                session_args["profile_name"] = profile
            session = boto3.Session(**session_args)

        self.region = region or session.region_name
        self.cloudformation = session.client("cloudformation")

    def exists(self, stack_name: str) -> bool:
        """Check whether a stack exists.

        A stack in REVIEW_IN_PROGRESS was only ever used for a CREATE
        changeset and is reported as not existing. A missing stack raises a
        ValidationError ("does not exist") that callers classify.
        """
        response = self.cloudformation.describe_stacks(StackName=stack_name)
        for stack in response.get("Stacks", []):
            if stack["StackName"] == stack_name and stack["StackStatus"] == REVIEW_IN_PROGRESS:
                return False
        return True

    def validate_template(
        self, template_url: Optional[str] = None, template_body: Optional[str] = None
    ) -> Dict[str, Any]:
        """Validate a CloudFormation template.

        Args:
            template_url: S3 URL to template
            template_body: Template content as string

        Returns:
            Validation response
        """
        if template_url:
            return self.cloudformation.validate_template(TemplateURL=template_url)
        if template_body:
            return self.cloudformation.validate_template(TemplateBody=template_body)
        raise ValueError("Either template_url or template_body must be provided")

    def create_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        change_set_type: str,
        parameters: List[Dict[str, str]],
        capabilities: List[str],
        template_url: Optional[str] = None,
        template_body: Optional[str] = None,
        role_arn: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "StackName": stack_name,
            "ChangeSetName": change_set_name,
            "ChangeSetType": change_set_type,
            "Parameters": parameters,
            "Capabilities": capabilities,
        }
        params.update(_template_source(template_url, template_body))
        if role_arn:
            params["RoleARN"] = role_arn

        return self.cloudformation.create_change_set(**params)

    def describe_change_set(self, stack_name: str, change_set_name: str) -> Dict[str, Any]:
        """Describe a changeset, following pagination of its change list.

        Returns:
            Dictionary with status, reason and the full list of changes
        """
        changes: List[Dict[str, Any]] = []
        params = {"StackName": stack_name, "ChangeSetName": change_set_name}

        while True:
            response = self.cloudformation.describe_change_set(**params)
            changes.extend(response.get("Changes", []))
            next_token = response.get("NextToken")
            if not next_token:
                break
            params["NextToken"] = next_token

        return {
            "status": response.get("Status", ""),
            "reason": response.get("StatusReason", ""),
            "changes": changes,
        }

    def delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        self.cloudformation.delete_change_set(
            StackName=stack_name, ChangeSetName=change_set_name
        )

    def create_stack(
        self,
        stack_name: str,
        parameters: List[Dict[str, str]],
        capabilities: List[str],
        template_url: Optional[str] = None,
        template_body: Optional[str] = None,
        stack_policy: Optional[Dict[str, Any]] = None,
        role_arn: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "StackName": stack_name,
            "Parameters": parameters,
            "Capabilities": capabilities,
        }
        params.update(_template_source(template_url, template_body))
        if not is_trivial_policy(stack_policy):
            params["StackPolicyBody"] = json.dumps(stack_policy)
        if role_arn:
            params["RoleARN"] = role_arn

        return self.cloudformation.create_stack(**params)

    def update_stack(
        self,
        stack_name: str,
        parameters: List[Dict[str, str]],
        capabilities: List[str],
        template_url: Optional[str] = None,
        template_body: Optional[str] = None,
        role_arn: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "StackName": stack_name,
            "Parameters": parameters,
            "Capabilities": capabilities,
        }
        params.update(_template_source(template_url, template_body))
        if role_arn:
            params["RoleARN"] = role_arn

        return self.cloudformation.update_stack(**params)

    def delete_stack(self, stack_name: str, role_arn: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"StackName": stack_name}
        if role_arn:
            params["RoleARN"] = role_arn

        return self.cloudformation.delete_stack(**params)

    def describe_stack_status(self, stack_name: str) -> Tuple[Optional[str], str]:
        """Get current stack status and status reason."""
        response = self.cloudformation.describe_stacks(StackName=stack_name)
        for stack in response.get("Stacks", []):
            if stack["StackName"] == stack_name:
                return str(stack["StackStatus"]), stack.get("StackStatusReason", "")
        return None, ""

    def get_stack_policy(self, stack_name: str) -> Optional[Dict[str, Any]]:
        """Get stack policy if it exists.

        Args:
            stack_name: Name of the CloudFormation stack

        Returns:
            Stack policy as dict or None
        """
        response = self.cloudformation.get_stack_policy(StackName=stack_name)
        body = response.get("StackPolicyBody")
        if not body:
            return None
        return dict(json.loads(body))

    def set_stack_policy(self, stack_name: str, policy: Dict[str, Any]) -> None:
        self.cloudformation.set_stack_policy(
            StackName=stack_name, StackPolicyBody=json.dumps(policy)
        )

    def get_physical_resource_id(self, stack_name: str, logical_id: str) -> str:
        """Get the physical id of a resource in a stack.

        Raises:
            CfstackError: The stack does not exist
        """
        try:
            response = self.cloudformation.describe_stack_resource(
                StackName=stack_name, LogicalResourceId=logical_id
            )
        except ClientError as e:
            if "does not exist" in str(e):
                raise CfstackError(
                    f"{stack_name} stack doesn't exist in {self.region}, "
                    "run 'cfstack init' for this region first"
                ) from e
            raise
        return str(response["StackResourceDetail"]["PhysicalResourceId"])


def _template_source(template_url: Optional[str], template_body: Optional[str]) -> Dict[str, str]:
    if template_url:
        return {"TemplateURL": template_url}
    if template_body:
        return {"TemplateBody": template_body}
    raise ValueError("Either template_url or template_body must be provided")
