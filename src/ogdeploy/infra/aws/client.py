"""AWS account queries used during installation.

Wraps the two AWS calls the installer needs: the STS caller identity (to
verify credentials) and the ACM certificate lookup (to choose HTTPS with an
existing certificate).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger


@dataclass(frozen=True)
class CallerIdentity:
    """Identity behind the active AWS credentials."""

    account: str
    arn: str
    user_id: str


class AwsClient:
    """Thin boto3 wrapper for STS and ACM.

    A session is created lazily so constructing the client never touches
    the credential chain.
    """

    def __init__(self, region: str | None = None, profile: str | None = None) -> None:
        """Initialize the AWS client.

        Args:
            region: AWS region (default: from the environment or profile)
            profile: Named profile (default: the default credential chain)
        """
        self._region = region
        self._profile = profile
        self._session: Any = None

    @property
    def session(self) -> boto3.Session:
        """Get the boto3 session, creating it on first use."""
        if self._session is None:
            self._session = boto3.Session(profile_name=self._profile, region_name=self._region)
        return self._session

    @property
    def region(self) -> str | None:
        """Get the effective region."""
        return self._region or self.session.region_name

    def get_caller_identity(self) -> CallerIdentity | None:
        """Get the identity of the configured credentials.

        Returns:
            CallerIdentity, or None when credentials are missing or rejected
        """
        try:
            response = self.session.client("sts").get_caller_identity()
        except (BotoCoreError, ClientError) as e:
            logger.debug("STS GetCallerIdentity failed: {}", e)
            return None
        return CallerIdentity(
            account=response.get("Account", ""),
            arn=response.get("Arn", ""),
            user_id=response.get("UserId", ""),
        )

    def find_issued_certificate(self, domain: str) -> str | None:
        """Find an ISSUED ACM certificate whose domain name is exactly `domain`.

        Args:
            domain: Fully qualified domain name

        Returns:
            ARN of the first matching certificate, or None
        """
        try:
            paginator = self.session.client("acm").get_paginator("list_certificates")
            for page in paginator.paginate(CertificateStatuses=["ISSUED"]):
                for summary in page.get("CertificateSummaryList", []):
                    if summary.get("DomainName") == domain:
                        return summary.get("CertificateArn")
        except (BotoCoreError, ClientError) as e:
            logger.warning(
                "ACM certificate lookup failed for {}; continuing without one: {}", domain, e
            )
        return None
