"""AWS Organization integration commands."""

from pathlib import Path
from typing import Annotated

import typer

from ogdeploy.cli.shared.console import console, with_error_handling
from ogdeploy.infra.aws.org_template import (
    DEFAULT_IAM_USER_NAME,
    DEFAULT_ROLE_NAME,
    render_organization_template,
)


@with_error_handling
def aws_template(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the template to this file instead of stdout"),
    ] = None,
    iam_user: Annotated[
        str,
        typer.Option("--iam-user", help="IAM user created in the management account"),
    ] = DEFAULT_IAM_USER_NAME,
    role_name: Annotated[
        str,
        typer.Option("--role-name", help="Read-only role created in every member account"),
    ] = DEFAULT_ROLE_NAME,
    ou: Annotated[
        list[str] | None,
        typer.Option(
            "--ou",
            help="Organizational unit to roll the member role out to (repeatable)",
        ),
    ] = None,
) -> None:
    """Render the AWS Organization CloudFormation template.

    Deploy the template in the management account to grant OpenGovernance
    read-only access to the organization and its member accounts.

    Examples:
        ogdeploy aws-template > opencomply-org.yaml
        ogdeploy aws-template -o opencomply-org.yaml --ou ou-abcd-12345678
    """
    template = render_organization_template(iam_user, role_name, ou or None)

    if output is None:
        typer.echo(template, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(template)
    console.ok(f"Template written to {output}")
