"""CloudFormation template for the AWS Organization integration.

The template creates, in the management account, a role and an IAM user the
platform uses to inventory the organization, plus a service-managed StackSet
that rolls a read-only role out to every member account of the selected
organizational units. Intrinsic functions use their JSON form ({"Ref": ...},
{"Fn::Sub": ...}) so the document dumps cleanly with yaml.safe_dump.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import yaml

DEFAULT_IAM_USER_NAME = "OpenComplyIAMUser"
DEFAULT_ROLE_NAME = "OpenComplyReadOnly"
STACK_SET_NAME = "OpenComplyMemberAccountRollout"
MEMBER_POLICY_NAME = "OpenComplyPolicy"
MEMBER_SESSION_DURATION = 28800

POLICY_VERSION = "2012-10-17"
TEMPLATE_VERSION = "2010-09-09"

_AWS_POLICY = "arn:aws:iam::aws:policy/"

# Read-only managed policies shared by the IAM user and the member role
READ_ONLY_POLICIES: tuple[str, ...] = (
    _AWS_POLICY + "ReadOnlyAccess",
    _AWS_POLICY + "SecurityAudit",
    _AWS_POLICY + "AWSOrganizationsReadOnlyAccess",
    _AWS_POLICY + "AWSBillingReadOnlyAccess",
    _AWS_POLICY + "IAMAccessAnalyzerReadOnlyAccess",
    _AWS_POLICY + "IAMAccessAdvisorReadOnly",
)

SSO_READ_ONLY_POLICIES: tuple[str, ...] = (
    _AWS_POLICY + "AWSSSODirectoryReadOnly",
    _AWS_POLICY + "AWSSSOReadOnly",
)

# Data-plane reads the member role must never perform
DENIED_ACTIONS: tuple[str, ...] = (
    "cloudformation:GetTemplate",
    "dynamodb:GetItem",
    "dynamodb:BatchGetItem",
    "dynamodb:Query",
    "dynamodb:Scan",
    "ec2:GetConsoleOutput",
    "ec2:GetConsoleScreenshot",
    "ecr:BatchGetImage",
    "ecr:GetAuthorizationToken",
    "ecr:GetDownloadUrlForLayer",
    "kinesis:Get*",
    "lambda:GetFunction",
    "logs:GetLogEvents",
    "s3:GetObject",
    "sdb:Select*",
    "sqs:ReceiveMessage",
)


def _ref(name: str) -> dict[str, str]:
    return {"Ref": name}


def _sub(expression: str) -> dict[str, str]:
    return {"Fn::Sub": expression}


def _policy_document(*statements: dict[str, Any]) -> dict[str, Any]:
    return {"Version": POLICY_VERSION, "Statement": list(statements)}


def _allow(actions: Sequence[str], resource: Any = "*") -> dict[str, Any]:
    return {"Effect": "Allow", "Action": list(actions), "Resource": resource}


def build_member_account_template() -> dict[str, Any]:
    """Build the template the StackSet deploys into each member account."""
    return {
        "AWSTemplateFormatVersion": TEMPLATE_VERSION,
        "Description": "Create a reader role in member accounts.",
        "Parameters": {
            "OrganizationIAMUserArn": {
                "Type": "String",
                "Description": "The IAM User ARN that is allowed to assume the role.",
            },
            "MemberAccountRoleName": {
                "Type": "String",
                "Description": "The name of the role that will be deployed in each member account.",
            },
        },
        "Resources": {
            "OpenComply": {
                "Type": "AWS::IAM::ManagedPolicy",
                "Properties": {
                    "ManagedPolicyName": MEMBER_POLICY_NAME,
                    "Description": "Denies data-plane reads the inventory role must not perform",
                    "PolicyDocument": _policy_document(
                        {"Effect": "Deny", "Resource": "*", "Action": list(DENIED_ACTIONS)}
                    ),
                },
            },
            "MemberAccountReadOnlyRole": {
                "Type": "AWS::IAM::Role",
                "Properties": {
                    "RoleName": _ref("MemberAccountRoleName"),
                    "Description": "Read Only Access to fetch inventory from member accounts",
                    "ManagedPolicyArns": [_ref("OpenComply"), *READ_ONLY_POLICIES],
                    "MaxSessionDuration": MEMBER_SESSION_DURATION,
                    "AssumeRolePolicyDocument": _policy_document(
                        {
                            "Effect": "Allow",
                            "Principal": {"AWS": _sub("${OrganizationIAMUserArn}")},
                            "Action": ["sts:AssumeRole", "sts:TagSession"],
                        }
                    ),
                },
            },
        },
    }


def build_organization_template(
    iam_user_name: str = DEFAULT_IAM_USER_NAME,
    role_name: str = DEFAULT_ROLE_NAME,
    organization_units: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Build the management-account template.

    Args:
        iam_user_name: Default for the IAMUsernameInOrganizationAccount parameter
        role_name: Default for the RoleNameInAccount parameter
        organization_units: Default OU IDs for the OrganizationUnitList parameter

    Returns:
        Template as a plain mapping
    """
    ou_parameter: dict[str, Any] = {
        "Type": "CommaDelimitedList",
        "Description": (
            "List of Organizational Unit (OU) IDs to deploy the stackset to. "
            "Enter each OU ID without spaces."
        ),
    }
    if organization_units:
        ou_parameter["Default"] = ",".join(organization_units)

    organization_role = {
        "Type": "AWS::IAM::Role",
        "Properties": {
            "RoleName": _ref("RoleNameInAccount"),
            "Description": (
                "Allows the OpenComply platform to gather inventory of the "
                "organization and member accounts"
            ),
            "AssumeRolePolicyDocument": _policy_document(
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": _sub("${AWS::AccountId}")},
                    "Action": ["sts:AssumeRole", "sts:TagSession"],
                }
            ),
            "Policies": [
                {
                    "PolicyName": "OpenComplyRoleAssumption",
                    "PolicyDocument": _policy_document(
                        _allow(["organizations:List*", "sts:AssumeRole"])
                    ),
                }
            ],
            "ManagedPolicyArns": [*READ_ONLY_POLICIES, *SSO_READ_ONLY_POLICIES],
        },
    }

    iam_user = {
        "Type": "AWS::IAM::User",
        "Properties": {
            "UserName": _ref("IAMUsernameInOrganizationAccount"),
            "ManagedPolicyArns": list(READ_ONLY_POLICIES),
            "Policies": [
                {
                    "PolicyName": "OpenComplySSOPermissions",
                    "PolicyDocument": _policy_document(
                        _allow(
                            [
                                "sso:Describe*",
                                "sso:Get*",
                                "sso:List*",
                                "sso:Search*",
                                "sso-directory:DescribeDirectory",
                            ]
                        )
                    ),
                },
                {
                    "PolicyName": "OpenComplyAssumeRolePolicy",
                    "PolicyDocument": _policy_document(
                        _allow(
                            ["sts:AssumeRole"],
                            _sub("arn:aws:iam::*:role/${RoleNameInAccount}"),
                        )
                    ),
                },
            ],
        },
    }

    stack_set = {
        "Type": "AWS::CloudFormation::StackSet",
        "Condition": "HasOUs",
        "Properties": {
            "StackSetName": STACK_SET_NAME,
            "Description": (
                "Stack Set that will roll out to member accounts within "
                "specified Organizational Units"
            ),
            "Capabilities": ["CAPABILITY_NAMED_IAM"],
            "PermissionModel": "SERVICE_MANAGED",
            "AutoDeployment": {"Enabled": True, "RetainStacksOnAccountRemoval": False},
            "ManagedExecution": {"Active": True},
            "StackInstancesGroup": [
                {
                    "DeploymentTargets": {
                        "OrganizationalUnitIds": _ref("OrganizationUnitList")
                    },
                    "Regions": [_ref("AWS::Region")],
                }
            ],
            "Parameters": [
                {
                    "ParameterKey": "OrganizationIAMUserArn",
                    "ParameterValue": _sub(
                        "arn:aws:iam::${AWS::AccountId}:user/${IAMUsernameInOrganizationAccount}"
                    ),
                },
                {
                    "ParameterKey": "MemberAccountRoleName",
                    "ParameterValue": _ref("RoleNameInAccount"),
                },
            ],
            "TemplateBody": json.dumps(build_member_account_template(), indent=2),
        },
    }

    return {
        "AWSTemplateFormatVersion": TEMPLATE_VERSION,
        "Description": (
            "Deploys OpenComply Platform to AWS Organization, targeting only "
            "Organizational Units (OUs)"
        ),
        "Parameters": {
            "IAMUsernameInOrganizationAccount": {
                "Type": "String",
                "Default": iam_user_name,
                "Description": "IAM User to create",
            },
            "RoleNameInAccount": {
                "Type": "String",
                "Default": role_name,
                "Description": "The name of the role that will be assumed in each member account.",
            },
            "OrganizationUnitList": ou_parameter,
        },
        "Conditions": {
            "HasOUs": {
                "Fn::Not": [
                    {"Fn::Equals": [{"Fn::Join": ["", _ref("OrganizationUnitList")]}, ""]}
                ]
            }
        },
        "Resources": {
            "OrganizationRole": organization_role,
            "IAMUserInOrganizationAccount": iam_user,
            "MemberAccountRoleStackSet": stack_set,
        },
        "Outputs": {
            "IAMUserNameInMasterAccount": {
                "Description": "IAM Username in the Master Account.",
                "Value": _ref("IAMUsernameInOrganizationAccount"),
            },
            "IAMRoleName": {
                "Description": "IAM Rolename that is created.",
                "Value": _ref("RoleNameInAccount"),
            },
        },
    }


def render_organization_template(
    iam_user_name: str = DEFAULT_IAM_USER_NAME,
    role_name: str = DEFAULT_ROLE_NAME,
    organization_units: Sequence[str] | None = None,
) -> str:
    """Render the management-account template as YAML."""
    template = build_organization_template(iam_user_name, role_name, organization_units)
    return yaml.safe_dump(template, sort_keys=False, width=120)
