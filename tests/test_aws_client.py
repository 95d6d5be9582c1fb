"""Unit tests for AWS Client Manager."""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from envforge.core.aws_client import AWSClientManager, Caller, SessionProvider


def _session_with_identity(region_name="us-west-2"):
    mock_session = Mock()
    mock_session.region_name = region_name
    mock_sts_client = Mock()
    mock_sts_client.get_caller_identity.return_value = {
        "Account": "123456789012",
        "Arn": "arn:aws:iam::123456789012:user/admin",
        "UserId": "AIDAEXAMPLE",
    }
    mock_session.client.return_value = mock_sts_client
    return mock_session, mock_sts_client


class TestAWSClientManager:
    """Test cases for AWSClientManager class."""

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_success(self, mock_session_class):
        """Test successful initialization."""
        mock_session, mock_sts_client = _session_with_identity()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager.profile_name is None
        mock_session_class.assert_called_once_with()
        mock_sts_client.get_caller_identity.assert_called_once()

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_with_profile(self, mock_session_class):
        """Test initialization with profile."""
        mock_session, _ = _session_with_identity()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager(profile_name="prod-admin")

        assert manager.profile_name == "prod-admin"
        mock_session_class.assert_called_with(profile_name="prod-admin")

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_with_static_credentials(self, mock_session_class):
        """Test initialization with static temporary credentials."""
        mock_session, _ = _session_with_identity()
        mock_session_class.return_value = mock_session

        AWSClientManager(
            access_key_id="AKIAEXAMPLE",
            secret_access_key="secret",
            session_token="token",
        )

        mock_session_class.assert_called_with(
            aws_access_key_id="AKIAEXAMPLE",
            aws_secret_access_key="secret",
            aws_session_token="token",
        )

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_with_static_credentials_without_token(self, mock_session_class):
        """Test an empty session token is passed as None."""
        mock_session, _ = _session_with_identity()
        mock_session_class.return_value = mock_session

        AWSClientManager(access_key_id="AKIAEXAMPLE", secret_access_key="secret", session_token="")

        assert mock_session_class.call_args.kwargs["aws_session_token"] is None

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_no_credentials(self, mock_session_class):
        """Test initialization with no credentials."""
        mock_session, mock_sts_client = _session_with_identity()
        mock_sts_client.get_caller_identity.side_effect = NoCredentialsError()
        mock_session_class.return_value = mock_session

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_profile_not_found(self, mock_session_class):
        """Test initialization with invalid profile."""
        mock_session_class.side_effect = ProfileNotFound(profile="invalid")

        with pytest.raises(ProfileNotFound):
            AWSClientManager(profile_name="invalid")

    @patch("envforge.core.aws_client.boto3.Session")
    def test_init_invalid_token(self, mock_session_class):
        """Test expired credentials are reported as missing credentials."""
        mock_session, mock_sts_client = _session_with_identity()
        mock_sts_client.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "InvalidClientTokenId", "Message": "invalid"}},
            "GetCallerIdentity",
        )
        mock_session_class.return_value = mock_session

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("envforge.core.aws_client.boto3.Session")
    def test_get_client_caching(self, mock_session_class):
        """Test client caching per service and region."""
        mock_session, mock_sts_client = _session_with_identity()
        mock_ec2_client = Mock()

        def client_side_effect(service_name, region_name=None):
            if service_name == "sts":
                return mock_sts_client
            elif service_name == "ec2":
                return mock_ec2_client
            return Mock()

        mock_session.client.side_effect = client_side_effect
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        client1 = manager.get_client("ec2", "us-east-1")
        client2 = manager.get_client("ec2", "us-east-1")

        assert client1 is client2
        assert client1 is mock_ec2_client

    @patch("envforge.core.aws_client.boto3.Session")
    def test_get_client_defaults_to_bound_region(self, mock_session_class):
        """Test clients are created in the overlaid region."""
        mock_session, _ = _session_with_identity(region_name="us-east-1")
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()
        manager.region = "eu-west-1"
        manager.get_client("cloudformation")

        mock_session.client.assert_called_with("cloudformation", region_name="eu-west-1")

    @patch("envforge.core.aws_client.boto3.Session")
    def test_region_prefers_overlay(self, mock_session_class):
        """Test the explicit region wins over the session region."""
        mock_session, _ = _session_with_identity(region_name="us-west-2")
        mock_session_class.return_value = mock_session

        manager = AWSClientManager(region_name="ap-south-1")

        assert manager.region == "ap-south-1"
        assert manager.get_current_region() == "ap-south-1"

    @patch("envforge.core.aws_client.boto3.Session")
    def test_region_none_when_unconfigured(self, mock_session_class):
        """Test the region stays undecided without configuration."""
        mock_session, _ = _session_with_identity(region_name=None)
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        assert manager.region is None
        assert manager.get_current_region() == "us-east-1"

    @patch("envforge.core.aws_client.boto3.Session")
    def test_get_caller_identity(self, mock_session_class):
        """Test getting the caller identity."""
        mock_session, _ = _session_with_identity()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()
        caller = manager.get_caller_identity()

        assert caller.account == "123456789012"
        assert caller.root_user_arn == "arn:aws:iam::123456789012:root"
        assert manager.get_account_id() == "123456789012"

    @patch("envforge.core.aws_client.boto3.Session")
    def test_clear_cache(self, mock_session_class):
        """Test clearing client cache."""
        mock_session, _ = _session_with_identity()
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()
        manager.get_client("ec2", "us-east-1")
        assert len(manager._clients) == 1

        manager.clear_cache()
        assert len(manager._clients) == 0


class TestCaller:
    """Test cases for Caller class."""

    def test_root_user_arn_keeps_partition(self):
        """Test the root ARN is built in the caller's partition."""
        caller = Caller(
            account="210987654321",
            arn="arn:aws-cn:sts::210987654321:assumed-role/admin/session",
            user_id="AROAEXAMPLE:session",
        )

        assert caller.partition == "aws-cn"
        assert caller.root_user_arn == "arn:aws-cn:iam::210987654321:root"

    def test_partition_defaults_to_aws(self):
        """Test a malformed ARN falls back to the aws partition."""
        caller = Caller(account="123456789012", arn="", user_id="")

        assert caller.partition == "aws"


class TestSessionProvider:
    """Test cases for SessionProvider class."""

    @patch("envforge.core.aws_client.boto3.Session")
    def test_available_profiles_sorted(self, mock_session_class):
        """Test profiles are listed in name order."""
        mock_session_class.return_value.available_profiles = ["prod", "default", "dev"]

        assert SessionProvider().available_profiles() == ["default", "dev", "prod"]

    @patch("envforge.core.aws_client.AWSClientManager")
    def test_from_profile(self, mock_manager_class):
        """Test a named profile session."""
        SessionProvider().from_profile("prod-admin")

        mock_manager_class.assert_called_once_with(profile_name="prod-admin")

    @patch("envforge.core.aws_client.AWSClientManager")
    def test_from_static_creds(self, mock_manager_class):
        """Test a static credentials session."""
        SessionProvider().from_static_creds("AKIAEXAMPLE", "secret", "token")

        mock_manager_class.assert_called_once_with(
            access_key_id="AKIAEXAMPLE",
            secret_access_key="secret",
            session_token="token",
        )

    @patch("envforge.core.aws_client.AWSClientManager")
    def test_default_with_region(self, mock_manager_class):
        """Test a default chain session bound to a region."""
        SessionProvider().default_with_region("eu-central-1")

        mock_manager_class.assert_called_once_with(region_name="eu-central-1")
