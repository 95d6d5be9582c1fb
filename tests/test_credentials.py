"""Tests for environment session resolution."""

import pytest
from unittest.mock import Mock

from envforge.core.aws_client import AWSClientManager, SessionProvider
from envforge.core.config import ConfigurationError
from envforge.core.interactive import Prompter
from envforge.environment.credentials import (
    SessionResolver,
    TempCredsVars,
    resolve_region,
    validate_credentials,
)
from envforge.environment.selector import CredsSelector


@pytest.fixture
def session():
    """Mock session without a configured region."""
    mgr = Mock(spec=AWSClientManager)
    mgr.region = None
    return mgr


@pytest.fixture
def session_provider(session):
    """Mock session provider returning the same session for every source."""
    provider = Mock(spec=SessionProvider)
    provider.from_profile.return_value = session
    provider.from_static_creds.return_value = session
    return provider


@pytest.fixture
def prompter():
    """Mock prompter."""
    return Mock(spec=Prompter)


@pytest.fixture
def creds_selector(session):
    """Mock credentials selector."""
    selector = Mock(spec=CredsSelector)
    selector.creds.return_value = session
    return selector


@pytest.fixture
def resolver(session_provider, prompter, creds_selector):
    """Session resolver over mocked collaborators."""
    return SessionResolver(session_provider, prompter, creds_selector=creds_selector)


class TestValidateCredentials:
    """Test cases for credential flag validation."""

    @pytest.mark.parametrize("temp_creds,flag", [
        (TempCredsVars(access_key_id="AKIA"), "--aws-access-key-id"),
        (TempCredsVars(secret_access_key="secret"), "--aws-secret-access-key"),
        (TempCredsVars(session_token="token"), "--aws-session-token"),
    ])
    def test_profile_with_static_creds(self, temp_creds, flag):
        """Test a profile cannot be combined with any static credential."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_credentials("default", temp_creds)

        assert str(exc_info.value) == f"cannot specify both --profile and {flag}"

    def test_profile_only(self):
        """Test a profile alone is valid."""
        validate_credentials("default", TempCredsVars())

    def test_static_creds_only(self):
        """Test static credentials alone are valid."""
        validate_credentials("", TempCredsVars(access_key_id="AKIA", secret_access_key="secret"))

    def test_temp_creds_is_set(self):
        """Test both the key ID and secret are required."""
        assert TempCredsVars(access_key_id="AKIA", secret_access_key="secret").is_set() is True
        assert TempCredsVars(access_key_id="AKIA").is_set() is False


class TestResolveRegion:
    """Test cases for resolve_region."""

    def test_flag_wins(self, session, prompter):
        """Test an explicit region overrides the session's."""
        session.region = "us-east-1"

        assert resolve_region(session, "eu-west-1", prompter) == "eu-west-1"
        assert session.region == "eu-west-1"
        prompter.get.assert_not_called()

    def test_session_region(self, session, prompter):
        """Test the session's configured region is kept."""
        session.region = "us-east-1"

        assert resolve_region(session, None, prompter) == "us-east-1"
        prompter.get.assert_not_called()

    def test_prompt_for_region(self, session, prompter):
        """Test the user is asked when nothing decides the region."""
        prompter.get.return_value = "ap-southeast-2"

        assert resolve_region(session, None, prompter, default_region="us-west-2") == "ap-southeast-2"
        assert session.region == "ap-southeast-2"
        assert prompter.get.call_args.kwargs["default"] == "us-west-2"


class TestSessionResolver:
    """Test cases for SessionResolver class."""

    def test_profile(self, resolver, session_provider, creds_selector, session):
        """Test a named profile is used first."""
        result = resolver.resolve("test", profile="prod-admin", region="us-west-2")

        assert result is session
        session_provider.from_profile.assert_called_once_with("prod-admin")
        creds_selector.creds.assert_not_called()
        assert session.region == "us-west-2"

    def test_static_creds(self, resolver, session_provider, creds_selector):
        """Test static credentials are used without a profile."""
        resolver.resolve(
            "test",
            temp_creds=TempCredsVars(access_key_id="AKIA", secret_access_key="secret"),
            region="us-west-2",
        )

        session_provider.from_static_creds.assert_called_once_with("AKIA", "secret", None)
        creds_selector.creds.assert_not_called()

    def test_interactive(self, resolver, session_provider, creds_selector, prompter, session):
        """Test the user selects credentials and region when no flag is given."""
        prompter.get.return_value = "us-west-2"

        result = resolver.resolve("test")

        assert result is session
        assert "test" in creds_selector.creds.call_args.args[0]
        session_provider.from_profile.assert_not_called()
        assert session.region == "us-west-2"

    def test_conflicting_flags(self, resolver, session_provider):
        """Test conflicting flags fail before any session is built."""
        with pytest.raises(ConfigurationError):
            resolver.resolve("test", profile="default", temp_creds=TempCredsVars(session_token="token"))

        session_provider.from_profile.assert_not_called()
