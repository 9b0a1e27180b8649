"""AWS integration: account queries and the Organization template."""

from .client import AwsClient, CallerIdentity
from .org_template import build_organization_template, render_organization_template

__all__ = [
    "AwsClient",
    "CallerIdentity",
    "build_organization_template",
    "render_organization_template",
]
