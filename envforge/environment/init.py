"""The ``env init`` command.

The command validates flags, asks for whatever flags left out, then hands
a complete request to the orchestrator.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from envforge.core.aws_client import AWSClientManager, SessionProvider
from envforge.core.config import Configuration, ConfigurationError
from envforge.core.interactive import Prompter
from envforge.core.progress import Spinner
from envforge.core.validator import validate_environment_name
from envforge.deploy.cloudformation import CloudFormationDeployer
from envforge.deploy.ec2 import EC2Client
from envforge.deploy.iam import IAMRolesManager
from envforge.environment.credentials import SessionResolver, TempCredsVars, validate_credentials
from envforge.environment.orchestrator import EnvironmentInitOrchestrator, InitEnvRequest
from envforge.environment.vpc import (
    AdjustVPCVars,
    ImportVPCVars,
    VPCResolver,
    validate_customized_resources,
)
from envforge.store.models import Environment, NetworkCustomization
from envforge.store.ssm_store import NoSuchEnvironmentError, Store


logger = logging.getLogger(__name__)

APP_NAME_PROMPT = "In which application would you like to create the environment?"
APP_NAME_HELP = "An environment will be created in the selected application."
ENV_NAME_PROMPT = "What is your environment's name?"
ENV_NAME_HELP = "A unique identifier for an environment (e.g. dev, test, prod)."


@dataclass
class InitEnvVars:
    """Flags of the ``env init`` command."""

    app_name: str = ""
    name: str = ""
    profile: str = ""
    prod: bool = False
    default_config: bool = False
    import_vpc: ImportVPCVars = field(default_factory=ImportVPCVars)
    adjust_vpc: AdjustVPCVars = field(default_factory=AdjustVPCVars)
    temp_creds: TempCredsVars = field(default_factory=TempCredsVars)
    region: str = ""


class InitEnvironmentCommand:
    """Creates a new environment in an application."""

    def __init__(
        self,
        init_vars: InitEnvVars,
        config: Configuration,
        app_session: AWSClientManager,
        session_provider: Optional[SessionProvider] = None,
        prompter: Optional[Prompter] = None,
        store: Optional[Store] = None,
        progress: Optional[Spinner] = None,
    ) -> None:
        """Initialize the command.

        Args:
            init_vars: Flags given on the command line
            config: Tool configuration
            app_session: Session of the account holding the application
            session_provider: Builds the environment's session
            prompter: Asks for missing values
            store: Record store, defaults to one over the app session
            progress: Progress sink for long running steps
        """
        self.vars = init_vars
        self.config = config
        self.app_session = app_session
        self.session_provider = session_provider or SessionProvider()
        self.prompter = prompter or Prompter()
        self.store = store or Store(app_session, config.get_parameter_prefix())
        self.progress = progress or Spinner()
        self.env_session: Optional[AWSClientManager] = None
        self.network: Optional[NetworkCustomization] = None

    def validate(self) -> None:
        """Validate flags before anything is asked or created.

        Raises:
            ConfigurationError: When flags are invalid or conflict
        """
        if self.vars.name:
            self._validate_env_name(self.vars.name)
            if self.vars.app_name:
                self.validate_duplicate_env()
        validate_customized_resources(
            self.vars.import_vpc, self.vars.adjust_vpc, self.vars.default_config
        )
        validate_credentials(self.vars.profile, self.vars.temp_creds)

    def ask(self) -> None:
        """Ask for the values flags left out."""
        self._ask_app_name()
        self._ask_env_name()

        resolver = SessionResolver(
            self.session_provider, self.prompter, default_region=self.config.get_default_region()
        )
        self.env_session = resolver.resolve(
            self.vars.name, self.vars.profile, self.vars.temp_creds, self.vars.region or None
        )
        self.vars.region = self.env_session.region

        vpc_resolver = VPCResolver(
            self.prompter,
            EC2Client(self.env_session),
            config=self.config,
            region=self.vars.region,
        )
        resolution = vpc_resolver.resolve(
            self.vars.import_vpc, self.vars.adjust_vpc, self.vars.default_config
        )
        for warning in resolution.warnings:
            print(f"⚠️  {warning}")
        self.network = resolution.network

    def execute(self) -> Environment:
        """Provision the environment.

        Returns:
            The stored environment
        """
        if self.env_session is None or self.network is None:
            raise ConfigurationError("environment session and network must be resolved before execution")

        orchestrator = EnvironmentInitOrchestrator(
            store=self.store,
            app_deployer=CloudFormationDeployer(self.app_session),
            env_deployer=CloudFormationDeployer(self.env_session),
            app_session=self.app_session,
            env_session=self.env_session,
            iam=IAMRolesManager(self.env_session),
            progress=self.progress,
        )
        env = orchestrator.run(InitEnvRequest(
            app_name=self.vars.app_name,
            env_name=self.vars.name,
            env_region=self.vars.region,
            prod=self.vars.prod,
            network=self.network,
        ))
        print(f"✅ Created environment {env.name} in region {env.region} under application {env.app}.")
        return env

    def run(self) -> Environment:
        """Validate, ask and execute."""
        self.validate()
        self.ask()
        return self.execute()

    def validate_duplicate_env(self) -> None:
        """Fail when the environment already exists.

        Raises:
            ConfigurationError: When the environment exists or cannot be checked
        """
        try:
            self.store.get_environment(self.vars.app_name, self.vars.name)
        except NoSuchEnvironmentError:
            return
        except Exception as e:
            raise ConfigurationError(f"validate if environment exists: {e}") from e

        print("❌ It seems like you are trying to init an environment that already exists.")
        print("   To recreate the environment, delete it first and then run init again.")
        raise ConfigurationError(f"environment {self.vars.name} already exists")

    @staticmethod
    def _validate_env_name(name: str) -> None:
        try:
            validate_environment_name(name)
        except ValueError as e:
            raise ConfigurationError(str(e))

    def _ask_app_name(self) -> None:
        if self.vars.app_name:
            return
        apps = [app.name for app in self.store.list_applications()]
        if not apps:
            raise ConfigurationError("no applications found; create an application before adding environments")
        self.vars.app_name = self.prompter.select_one(APP_NAME_PROMPT, APP_NAME_HELP, apps)
        if self.vars.name:
            self.validate_duplicate_env()

    def _ask_env_name(self) -> None:
        if self.vars.name:
            return
        self.vars.name = self.prompter.get(
            ENV_NAME_PROMPT, ENV_NAME_HELP, validator=validate_environment_name
        )
        self.validate_duplicate_env()
