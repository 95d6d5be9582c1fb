"""Provisioning orchestration for new environments.

This module sequences the steps that turn a request for a new environment
into a deployed and recorded one:

    VALIDATED -> DNS_DELEGATED -> ROLE_BOOTSTRAPPED -> STACK_SET_REGISTERED
    -> RESOURCES_UPLOADED -> STACK_DEPLOYED -> RECORD_PERSISTED

Each step runs after the previous one committed its effect. Fatal failures
raise EnvironmentInitError; recovery aids such as role cleanup never fail
the run and report an AdvisoryResult instead.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from envforge.core.aws_client import AWSClientManager
from envforge.core.progress import Spinner, failure_message, success_message
from envforge.deploy.cloudformation import CloudFormationDeployer, StackAlreadyExistsError
from envforge.deploy.iam import IAMRolesManager, RoleAlreadyExistsError
from envforge.deploy.naming import ENV_TAG_KEY, env_role_names, stack_name_for_env
from envforge.deploy.s3 import NamedBinary, S3Uploader
from envforge.deploy.types import (
    LATEST_ENV_TEMPLATE_VERSION,
    AddEnvToAppOpts,
    AppInformation,
    CreateEnvironmentInput,
)
from envforge.store.models import Application, Environment, NetworkCustomization
from envforge.store.ssm_store import Store
from envforge.template.custom_resources import upload_environment_custom_resources


logger = logging.getLogger(__name__)

DNS_DELEGATION_START = "Sharing DNS permissions for this application to account {account}."
DNS_DELEGATION_FAILED = "Failed to grant DNS permissions to account {account}."
DNS_DELEGATION_COMPLETE = "Shared DNS permissions for this application to account {account}."
ADD_ENV_TO_APP_START = "Linking account {account} and region {region} to application {app}."
ADD_ENV_TO_APP_FAILED = "Failed to link account {account} and region {region} to application {app}."
ADD_ENV_TO_APP_COMPLETE = "Linked account {account} and region {region} to application {app}."


class EnvironmentInitError(Exception):
    """Raised when a new environment cannot be provisioned."""
    pass


class ProvisioningState(Enum):
    """Last committed step of a provisioning run."""

    VALIDATED = "validated"
    DNS_DELEGATED = "dns_delegated"
    ROLE_BOOTSTRAPPED = "role_bootstrapped"
    STACK_SET_REGISTERED = "stack_set_registered"
    RESOURCES_UPLOADED = "resources_uploaded"
    STACK_DEPLOYED = "stack_deployed"
    RECORD_PERSISTED = "record_persisted"


@dataclass(frozen=True)
class AdvisoryResult:
    """Outcome of a best-effort operation.

    Advisory operations never raise; their failures are recorded here
    and logged.
    """

    operation: str
    succeeded: bool
    detail: str = ""

    @classmethod
    def ok(cls, operation: str, detail: str = "") -> "AdvisoryResult":
        return cls(operation, True, detail)

    @classmethod
    def failed(cls, operation: str, detail: str) -> "AdvisoryResult":
        return cls(operation, False, detail)


@dataclass
class InitEnvRequest:
    """A request to provision one environment."""

    app_name: str
    env_name: str
    env_region: str
    prod: bool = False
    network: NetworkCustomization = field(default_factory=NetworkCustomization.default)


UploaderFactory = Callable[[str], S3Uploader]


class EnvironmentInitOrchestrator:
    """Provisions a new environment across the app and environment accounts.

    Collaborators bound to the application account (store, app deployer,
    app session) and to the environment account (env deployer, env session,
    IAM) are injected at construction.
    """

    def __init__(
        self,
        store: Store,
        app_deployer: CloudFormationDeployer,
        env_deployer: CloudFormationDeployer,
        app_session: AWSClientManager,
        env_session: AWSClientManager,
        iam: IAMRolesManager,
        progress: Optional[Spinner] = None,
        uploader_factory: Optional[UploaderFactory] = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            store: Record store of the application account
            app_deployer: Deployer bound to the application account
            env_deployer: Deployer bound to the environment account and region
            app_session: Session of the application account
            env_session: Session of the environment account and region
            iam: Role manager of the environment account
            progress: Progress sink for long running steps
            uploader_factory: Builds an uploader for a region, defaults to
                one over the application account's session
        """
        self.store = store
        self.app_deployer = app_deployer
        self.env_deployer = env_deployer
        self.app_session = app_session
        self.env_session = env_session
        self.iam = iam
        self.progress = progress or Spinner()
        self.uploader_factory = uploader_factory or (lambda region: S3Uploader(app_session, region))
        self.state: Optional[ProvisioningState] = None
        self.advisories: List[AdvisoryResult] = []

    def run(self, request: InitEnvRequest) -> Environment:
        """Provision the environment and record it.

        Returns:
            The stored environment

        Raises:
            NoSuchApplicationError: When the application does not exist
            EnvironmentInitError: When a step fails
        """
        self.state = None
        self.advisories = []

        # The application must exist before anything is touched.
        app = self.store.get_application(request.app_name)
        self.state = ProvisioningState.VALIDATED

        try:
            env_account = self.env_session.get_account_id()
        except Exception as e:
            raise EnvironmentInitError(f"get identity: {e}") from e

        if app.requires_dns_delegation():
            try:
                self._delegate_dns_from_app(app, env_account)
            except Exception as e:
                raise EnvironmentInitError(f"granting DNS permissions: {e}") from e
            self.state = ProvisioningState.DNS_DELEGATED

        self._record(self._create_service_linked_role())
        self.state = ProvisioningState.ROLE_BOOTSTRAPPED

        self._add_to_stack_set(AddEnvToAppOpts(
            app=app,
            env_name=request.env_name,
            env_region=request.env_region,
            env_account_id=env_account,
        ))
        self.state = ProvisioningState.STACK_SET_REGISTERED

        urls = self._upload_custom_resources(app, request.env_region)
        self.state = ProvisioningState.RESOURCES_UPLOADED

        self._deploy_env(app, request, urls)
        self.state = ProvisioningState.STACK_DEPLOYED

        try:
            env = self.env_deployer.get_environment(request.app_name, request.env_name)
        except Exception as e:
            raise EnvironmentInitError(f"get environment struct for {request.env_name}: {e}") from e
        env.prod = request.prod
        env.custom_config = request.network.to_customize_env()

        try:
            self.store.create_environment(env)
        except Exception as e:
            raise EnvironmentInitError(f"store environment: {e}") from e
        self.state = ProvisioningState.RECORD_PERSISTED

        logger.info(f"Created environment {env.name} in region {env.region} under application {env.app}")
        return env

    def _record(self, result: AdvisoryResult) -> None:
        self.advisories.append(result)
        if not result.succeeded:
            logger.debug(f"Advisory operation {result.operation} failed: {result.detail}")

    def _delegate_dns_from_app(self, app: Application, account_id: str) -> None:
        # Delegation within the application's own account is already allowed.
        if account_id == app.account_id:
            return

        self.progress.start(DNS_DELEGATION_START.format(account=account_id))
        try:
            self.app_deployer.delegate_dns_permissions(app, account_id)
        except Exception:
            self.progress.stop(failure_message(DNS_DELEGATION_FAILED.format(account=account_id)))
            raise
        self.progress.stop(success_message(DNS_DELEGATION_COMPLETE.format(account=account_id)))

    def _create_service_linked_role(self) -> AdvisoryResult:
        # Without permissions the role must be created outside of envforge.
        operation = "create ECS service-linked role"
        try:
            self.iam.create_ecs_service_linked_role()
        except RoleAlreadyExistsError:
            return AdvisoryResult.ok(operation, "already exists")
        except Exception as e:
            return AdvisoryResult.failed(operation, str(e))
        return AdvisoryResult.ok(operation)

    def _add_to_stack_set(self, opts: AddEnvToAppOpts) -> None:
        labels = {"account": opts.env_account_id, "region": opts.env_region, "app": opts.app.name}
        self.progress.start(ADD_ENV_TO_APP_START.format(**labels))
        try:
            self.app_deployer.add_env_to_app(opts)
        except Exception as e:
            self.progress.stop(failure_message(ADD_ENV_TO_APP_FAILED.format(**labels)))
            raise EnvironmentInitError(
                f"deploy env {opts.env_name} to application {opts.app.name}: {e}"
            ) from e
        self.progress.stop(success_message(ADD_ENV_TO_APP_COMPLETE.format(**labels)))

    def _upload_custom_resources(self, app: Application, region: str) -> Dict[str, str]:
        # Inline Lambda source is limited to 4096 characters, so the
        # handlers live in the application's regional bucket.
        try:
            resources = self.app_deployer.get_app_resources_by_region(app, region)
        except Exception as e:
            raise EnvironmentInitError(f"get app resources: {e}") from e

        uploader = self.uploader_factory(region)

        def upload(key: str, *objects: NamedBinary) -> str:
            return uploader.zip_and_upload(resources.s3_bucket, key, *objects)

        try:
            return upload_environment_custom_resources(upload)
        except Exception as e:
            raise EnvironmentInitError(
                f"upload custom resources to bucket {resources.s3_bucket}: {e}"
            ) from e

    def _deploy_env(self, app: Application, request: InitEnvRequest, urls: Dict[str, str]) -> None:
        try:
            caller = self.app_session.get_caller_identity()
        except Exception as e:
            raise EnvironmentInitError(f"get identity: {e}") from e

        network = request.network
        env_input = CreateEnvironmentInput(
            name=request.env_name,
            app=AppInformation(
                name=request.app_name,
                dns_name=app.domain,
                account_principal_arn=caller.root_user_arn,
            ),
            prod=request.prod,
            additional_tags=dict(app.tags),
            custom_resources_urls=urls,
            import_vpc_config=network.import_vpc,
            adjust_vpc_config=network.adjust_vpc,
            version=LATEST_ENV_TEMPLATE_VERSION,
        )

        self._clean_up_dangling_roles(request.app_name, request.env_name)
        try:
            self.env_deployer.deploy_and_render_environment(self.progress, env_input)
        except StackAlreadyExistsError:
            logger.info(f"Stack {stack_name_for_env(request.app_name, request.env_name)} already exists")
            return
        except Exception as e:
            # Roles retained by the failed stack would block the next attempt.
            self.try_deleting_env_roles(request.app_name, request.env_name)
            raise EnvironmentInitError(f"deploy environment {request.env_name}: {e}") from e

    def _clean_up_dangling_roles(self, app: str, env: str) -> None:
        """Delete roles left over by a previous environment with the same name.

        Raises:
            EnvironmentInitError: When the environment stack cannot be checked
        """
        stack_name = stack_name_for_env(app, env)
        try:
            exists = self.env_deployer.exists(stack_name)
        except Exception as e:
            raise EnvironmentInitError(f"check if stack {stack_name} exists: {e}") from e
        if exists:
            return
        # No stack: either the environment was deleted before, or this is
        # the first run. Roles the deletion retained must go first.
        self.try_deleting_env_roles(app, env)

    def try_deleting_env_roles(self, app: str, env: str) -> List[AdvisoryResult]:
        """Best-effort deletion of the roles an environment stack retains.

        Only roles carrying the environment tag are deleted, so roles
        envforge did not create are left alone.
        """
        results = []
        for role_name in env_role_names(app, env):
            operation = f"delete role {role_name}"
            try:
                tags = self.iam.list_role_tags(role_name)
            except Exception as e:
                results.append(AdvisoryResult.failed(operation, f"list tags: {e}"))
                continue
            if ENV_TAG_KEY not in tags:
                results.append(AdvisoryResult.ok(operation, "skipped, not tagged"))
                continue
            try:
                self.iam.delete_role(role_name)
            except Exception as e:
                results.append(AdvisoryResult.failed(operation, str(e)))
                continue
            results.append(AdvisoryResult.ok(operation))

        for result in results:
            self._record(result)
        return results
