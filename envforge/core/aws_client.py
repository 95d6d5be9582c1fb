"""Centralized AWS client management with session handling.

This module provides a centralized way to build AWS sessions from a
named profile, static temporary credentials or the default credential
chain, and to manage clients across regions for a single session.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
import boto3
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)


@dataclass
class Caller:
    """Identity of the principal behind a session."""

    account: str
    arn: str
    user_id: str

    @property
    def partition(self) -> str:
        """Get the ARN partition of the caller (e.g. 'aws', 'aws-cn')."""
        parts = self.arn.split(":")
        return parts[1] if len(parts) > 1 and parts[1] else "aws"

    @property
    def root_user_arn(self) -> str:
        """Get the ARN of the root principal of the caller's account."""
        return f"arn:{self.partition}:iam::{self.account}:root"


class AWSClientManager:
    """Centralized AWS client management with session handling.

    A manager is bound to one boto3 session, i.e. one account, and to a
    region that can be overlaid after construction. Clients are cached
    per service and region.
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        region_name: Optional[str] = None,
    ) -> None:
        """Initialize AWS client manager.

        Args:
            profile_name: Optional AWS profile name for credentials
            access_key_id: Optional static access key id
            secret_access_key: Optional static secret access key
            session_token: Optional session token for temporary credentials
            region_name: Optional region overriding the session default

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, boto3.client] = {}
        self._profile_name = profile_name
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._session_token = session_token
        self._region_name = region_name
        self._validate_credentials()

    def _validate_credentials(self) -> None:
        """Validate AWS credentials are available and working.

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        try:
            session = self._get_session()
            # Test credentials by getting caller identity
            sts_client = session.client("sts", region_name=self.get_current_region())
            sts_client.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            # Invalid or expired credentials are as good as none.
            if e.response["Error"]["Code"] in ("InvalidUserID.NotFound", "InvalidClientTokenId"):
                raise NoCredentialsError() from e
            raise

    def _get_session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            elif self._access_key_id:
                self._session = boto3.Session(
                    aws_access_key_id=self._access_key_id,
                    aws_secret_access_key=self._secret_access_key,
                    aws_session_token=self._session_token or None,
                )
            else:
                self._session = boto3.Session()
        return self._session

    @property
    def profile_name(self) -> Optional[str]:
        """Get the named profile backing this session, if any."""
        return self._profile_name

    @property
    def region(self) -> Optional[str]:
        """Get the region this manager is bound to.

        The explicit overlay wins over the session's configured region.
        Returns None when neither is set.
        """
        if self._region_name:
            return self._region_name
        return self._get_session().region_name

    @region.setter
    def region(self, region_name: str) -> None:
        self._region_name = region_name

    def get_client(self, service_name: str, region_name: Optional[str] = None) -> boto3.client:
        """Get AWS service client for specified region.

        Args:
            service_name: AWS service name (e.g., 'cloudformation', 'iam')
            region_name: AWS region name, defaults to the bound region

        Returns:
            Configured boto3 client for the service and region
        """
        region_name = region_name or self.get_current_region()
        client_key = f"{service_name}_{region_name}"

        if client_key not in self._clients:
            session = self._get_session()
            self._clients[client_key] = session.client(
                service_name, region_name=region_name
            )

        return self._clients[client_key]

    def get_current_region(self) -> str:
        """Get current AWS region.

        Returns:
            Current AWS region name
        """
        return self.region or "us-east-1"

    def get_caller_identity(self) -> Caller:
        """Get the identity of the session's principal.

        Returns:
            Caller with account, ARN and user id

        Raises:
            ClientError: When unable to get caller information
        """
        sts_client = self.get_client("sts")
        response = sts_client.get_caller_identity()
        return Caller(
            account=response["Account"],
            arn=response["Arn"],
            user_id=response["UserId"],
        )

    def get_account_id(self) -> str:
        """Get current AWS account ID.

        Returns:
            Current AWS account ID
        """
        return self.get_caller_identity().account

    def clear_cache(self) -> None:
        """Clear cached clients to force recreation."""
        self._clients.clear()


class SessionProvider:
    """Builds client managers for the different credential sources."""

    def available_profiles(self) -> List[str]:
        """List named profiles known to the local AWS configuration."""
        return sorted(boto3.Session().available_profiles)

    def default(self) -> AWSClientManager:
        """Manager over the default credential chain."""
        return AWSClientManager()

    def default_with_region(self, region_name: str) -> AWSClientManager:
        """Manager over the default credential chain bound to a region."""
        return AWSClientManager(region_name=region_name)

    def from_profile(self, profile_name: str) -> AWSClientManager:
        """Manager over a named profile."""
        return AWSClientManager(profile_name=profile_name)

    def from_static_creds(
        self, access_key_id: str, secret_access_key: str, session_token: Optional[str] = None
    ) -> AWSClientManager:
        """Manager over static temporary credentials."""
        return AWSClientManager(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
        )
