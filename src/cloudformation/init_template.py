"""
Template for the per-region init stack holding cfstack's own resources.
"""

from typing import Any, Dict

from troposphere import GetAtt, Join, Output, Ref, Template, iam, s3

SOURCE_BUCKET = "SourceS3Bucket"
TEMPLATES_BUCKET = "TemplatesS3Bucket"
SERVICE_ROLE = "CloudFormationServiceIamRole"
SERVICE_POLICY = "CloudFormationServiceIamPolicy"

INIT_STACK_POLICY: Dict[str, Any] = {
    "Statement": [
        {
            "Effect": "Allow",
            "Action": "Update:*",
            "Principal": "*",
            "Resource": "*",
        }
    ]
}


def _versioned_bucket(name: str) -> s3.Bucket:
    return s3.Bucket(
        name,
        AccessControl="BucketOwnerFullControl",
        VersioningConfiguration=s3.VersioningConfiguration(Status="Enabled"),
    )


def build_init_template() -> Template:
    """Buckets for packaged sources and templates plus a CloudFormation service role."""
    template = Template()
    template.set_description("cfstack resources: artifact buckets and service role")

    template.add_resource(_versioned_bucket(SOURCE_BUCKET))
    template.add_resource(_versioned_bucket(TEMPLATES_BUCKET))

    role = template.add_resource(
        iam.Role(
            SERVICE_ROLE,
            AssumeRolePolicyDocument={
                "Statement": [
                    {
                        "Sid": "RoleToBeAssumedByCfstackToExecuteCloudformationFunctions",
                        "Effect": "Allow",
                        "Principal": {"Service": "cloudformation.amazonaws.com"},
                        "Action": "sts:AssumeRole",
                    }
                ]
            },
            Path="/",
        )
    )

    template.add_resource(
        iam.PolicyType(
            SERVICE_POLICY,
            PolicyName=Join("-", [Ref("AWS::StackName"), SERVICE_POLICY]),
            PolicyDocument={
                "Statement": [
                    {
                        "Sid": "AllowCloudFormationToManageStackResources",
                        "Effect": "Allow",
                        "Action": ["*"],
                        "Resource": "*",
                    }
                ]
            },
            Roles=[Ref(role)],
        )
    )

    template.add_output(Output("ServiceRoleArn", Value=GetAtt(role, "Arn")))
    return template


def init_template_body() -> str:
    return build_init_template().to_json()
