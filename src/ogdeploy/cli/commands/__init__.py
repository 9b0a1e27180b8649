"""CLI command modules.

Command groups:
- install: install, configure, status and uninstall of the platform
- aws: AWS Organization CloudFormation template
"""

from .aws import aws_template
from .install import configure, install, status, uninstall

__all__ = [
    "install",
    "configure",
    "status",
    "uninstall",
    "aws_template",
]
