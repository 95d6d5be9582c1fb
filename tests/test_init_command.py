"""Tests for the env init command."""

import pytest
from unittest.mock import Mock, patch

from envforge.core.aws_client import AWSClientManager, SessionProvider
from envforge.core.config import Configuration, ConfigurationError
from envforge.core.interactive import Prompter
from envforge.core.progress import Spinner
from envforge.environment.credentials import TempCredsVars
from envforge.environment.init import InitEnvironmentCommand, InitEnvVars
from envforge.environment.vpc import AdjustVPCVars, ImportVPCVars, VPCResolution
from envforge.store.models import Application, Environment, NetworkCustomization
from envforge.store.ssm_store import NoSuchEnvironmentError, Store, StoreError


@pytest.fixture
def config():
    """Mock configuration."""
    config = Mock(spec=Configuration)
    config.get_default_region.return_value = "us-west-2"
    config.get_parameter_prefix.return_value = "/envforge"
    return config


@pytest.fixture
def store():
    """Mock store without the environment."""
    store = Mock(spec=Store)
    store.get_environment.side_effect = NoSuchEnvironmentError("demo", "test")
    store.list_applications.return_value = [Application(name="demo", account_id="123456789012")]
    return store


@pytest.fixture
def prompter():
    """Mock prompter."""
    return Mock(spec=Prompter)


def _command(init_vars, config, store, prompter):
    return InitEnvironmentCommand(
        init_vars,
        config,
        app_session=Mock(spec=AWSClientManager),
        session_provider=Mock(spec=SessionProvider),
        prompter=prompter,
        store=store,
        progress=Mock(spec=Spinner),
    )


class TestValidate:
    """Test cases for flag validation."""

    def test_valid_flags(self, config, store, prompter):
        """Test valid flags check for an existing environment."""
        command = _command(InitEnvVars(app_name="demo", name="test"), config, store, prompter)

        command.validate()

        store.get_environment.assert_called_once_with("demo", "test")

    def test_invalid_name(self, config, store, prompter):
        """Test an invalid environment name."""
        command = _command(InitEnvVars(app_name="demo", name="Test_Env"), config, store, prompter)

        with pytest.raises(ConfigurationError):
            command.validate()

        store.get_environment.assert_not_called()

    def test_existing_environment(self, config, store, prompter):
        """Test an environment that already exists."""
        store.get_environment.side_effect = None
        store.get_environment.return_value = Environment(app="demo", name="test")
        command = _command(InitEnvVars(app_name="demo", name="test"), config, store, prompter)

        with pytest.raises(ConfigurationError) as exc_info:
            command.validate()

        assert "environment test already exists" in str(exc_info.value)

    def test_store_failure(self, config, store, prompter):
        """Test a failure to check for the environment."""
        store.get_environment.side_effect = StoreError("throttled")
        command = _command(InitEnvVars(app_name="demo", name="test"), config, store, prompter)

        with pytest.raises(ConfigurationError) as exc_info:
            command.validate()

        assert "validate if environment exists: throttled" in str(exc_info.value)

    def test_conflicting_credentials(self, config, store, prompter):
        """Test a profile with static credentials."""
        init_vars = InitEnvVars(name="test", profile="default", temp_creds=TempCredsVars(access_key_id="AKIA"))
        command = _command(init_vars, config, store, prompter)

        with pytest.raises(ConfigurationError) as exc_info:
            command.validate()

        assert "--profile" in str(exc_info.value)

    def test_conflicting_network_flags(self, config, store, prompter):
        """Test importing and adjusting together."""
        init_vars = InitEnvVars(
            name="test", import_vpc=ImportVPCVars(id="vpc-1"), adjust_vpc=AdjustVPCVars(cidr="10.1.0.0/16")
        )
        command = _command(init_vars, config, store, prompter)

        with pytest.raises(ConfigurationError):
            command.validate()


@patch("envforge.environment.init.VPCResolver")
@patch("envforge.environment.init.SessionResolver")
@patch("envforge.environment.init.EC2Client")
class TestAsk:
    """Test cases for asking for missing values."""

    def test_asks_app_and_name(self, mock_ec2, mock_session_resolver, mock_vpc_resolver,
                               config, store, prompter):
        """Test the application and name are asked for."""
        session = Mock(spec=AWSClientManager)
        session.region = "us-west-2"
        mock_session_resolver.return_value.resolve.return_value = session
        mock_vpc_resolver.return_value.resolve.return_value = VPCResolution(NetworkCustomization.default())
        prompter.select_one.return_value = "demo"
        prompter.get.return_value = "test"
        command = _command(InitEnvVars(), config, store, prompter)

        command.ask()

        assert command.vars.app_name == "demo"
        assert command.vars.name == "test"
        assert command.vars.region == "us-west-2"
        assert command.env_session is session
        assert command.network.to_customize_env() is None
        store.get_environment.assert_called_once_with("demo", "test")
        mock_ec2.assert_called_once_with(session)

    def test_flags_are_passed_through(self, mock_ec2, mock_session_resolver, mock_vpc_resolver,
                                      config, store, prompter):
        """Test given flags are not asked for."""
        session = Mock(spec=AWSClientManager)
        session.region = "eu-west-1"
        mock_session_resolver.return_value.resolve.return_value = session
        mock_vpc_resolver.return_value.resolve.return_value = VPCResolution(NetworkCustomization.default())
        init_vars = InitEnvVars(app_name="demo", name="test", profile="prod-admin", region="eu-west-1",
                                default_config=True)
        command = _command(init_vars, config, store, prompter)

        command.ask()

        prompter.select_one.assert_not_called()
        prompter.get.assert_not_called()
        mock_session_resolver.return_value.resolve.assert_called_once_with(
            "test", "prod-admin", init_vars.temp_creds, "eu-west-1"
        )
        assert mock_vpc_resolver.return_value.resolve.call_args.args[2] is True

    def test_no_applications(self, mock_ec2, mock_session_resolver, mock_vpc_resolver,
                             config, store, prompter):
        """Test an account without applications."""
        store.list_applications.return_value = []
        command = _command(InitEnvVars(name="test"), config, store, prompter)

        with pytest.raises(ConfigurationError) as exc_info:
            command.ask()

        assert "no applications found" in str(exc_info.value)
        mock_session_resolver.assert_not_called()

    def test_prints_warnings(self, mock_ec2, mock_session_resolver, mock_vpc_resolver,
                             config, store, prompter, capsys):
        """Test network warnings are shown to the user."""
        session = Mock(spec=AWSClientManager)
        session.region = "us-west-2"
        mock_session_resolver.return_value.resolve.return_value = session
        mock_vpc_resolver.return_value.resolve.return_value = VPCResolution(
            NetworkCustomization.default(), warnings=["No existing public subnets were found in VPC vpc-1."]
        )
        command = _command(InitEnvVars(app_name="demo", name="test"), config, store, prompter)

        command.ask()

        assert "⚠️  No existing public subnets were found in VPC vpc-1." in capsys.readouterr().out


class TestExecute:
    """Test cases for provisioning the environment."""

    def test_execute_before_ask(self, config, store, prompter):
        """Test execution requires resolved values."""
        command = _command(InitEnvVars(app_name="demo", name="test"), config, store, prompter)

        with pytest.raises(ConfigurationError):
            command.execute()

    @patch("envforge.environment.init.IAMRolesManager")
    @patch("envforge.environment.init.CloudFormationDeployer")
    @patch("envforge.environment.init.EnvironmentInitOrchestrator")
    def test_execute(self, mock_orchestrator, mock_deployer, mock_iam, config, store, prompter, capsys):
        """Test the orchestrator receives the resolved request."""
        mock_orchestrator.return_value.run.return_value = Environment(app="demo", name="test", region="us-west-2")
        command = _command(InitEnvVars(app_name="demo", name="test", region="us-west-2", prod=True),
                           config, store, prompter)
        command.env_session = Mock(spec=AWSClientManager)
        command.network = NetworkCustomization.default()

        env = command.execute()

        assert env.name == "test"
        request = mock_orchestrator.return_value.run.call_args.args[0]
        assert (request.app_name, request.env_name, request.env_region, request.prod) == (
            "demo", "test", "us-west-2", True
        )
        assert mock_deployer.call_count == 2
        mock_iam.assert_called_once_with(command.env_session)
        assert "Created environment test in region us-west-2 under application demo" in capsys.readouterr().out
