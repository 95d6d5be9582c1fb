"""CloudFormation deployment of environments.

This module provides the CloudFormationDeployer class which renders and
creates environment stacks, registers environments with their
application's stack set, shares DNS permissions across accounts and reads
back the deployed environment.
"""

import time
from typing import Any, Dict, List, Optional
from botocore.exceptions import ClientError, WaiterError

from envforge.core.aws_client import AWSClientManager
from envforge.core.progress import Spinner, failure_message, success_message
from envforge.deploy.naming import (
    APP_TAG_KEY,
    ENV_TAG_KEY,
    app_roles_stack_name,
    app_stack_set_name,
    stack_name_for_env,
)
from envforge.deploy.types import AddEnvToAppOpts, AppRegionalResources, CreateEnvironmentInput
from envforge.store.models import Application, Environment
from envforge.template.template import Template


CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"]
DNS_DELEGATION_ACCOUNTS_PARAM = "DNSDelegationAccounts"


class DeployerError(Exception):
    """Base exception for CloudFormation deployments."""
    pass


class StackAlreadyExistsError(DeployerError):
    """Raised when the stack being created already exists."""

    def __init__(self, stack_name: str) -> None:
        self.stack_name = stack_name
        super().__init__(f"stack {stack_name} already exists")


class StackNotFoundError(DeployerError):
    """Raised when a stack does not exist."""

    def __init__(self, stack_name: str) -> None:
        self.stack_name = stack_name
        super().__init__(f"stack {stack_name} does not exist")


class EnvironmentDeploymentError(DeployerError):
    """Raised when an environment stack fails to create."""
    pass


class StackSetError(DeployerError):
    """Raised when a stack set operation fails."""
    pass


def _is_not_found(error: ClientError) -> bool:
    return (
        error.response['Error']['Code'] == 'ValidationError'
        and 'does not exist' in error.response['Error'].get('Message', '')
    )


class CloudFormationDeployer:
    """Deploys environment stacks and application stack set instances."""

    # Stack creation timeout in seconds (60 minutes)
    DEFAULT_TIMEOUT_SECONDS = 3600

    # Status polling interval in seconds
    POLLING_INTERVAL_SECONDS = 10

    def __init__(self, aws_client_manager: AWSClientManager,
                 template: Optional[Template] = None) -> None:
        """Initialize the deployer.

        Args:
            aws_client_manager: Client manager of the account stacks are deployed to
            template: Template engine rendering the environment stack
        """
        self.aws_client_manager = aws_client_manager
        self.template = template or Template()
        self._cloudformation_client = None

    @property
    def cloudformation_client(self):
        """Get CloudFormation client with lazy initialization."""
        if self._cloudformation_client is None:
            self._cloudformation_client = self.aws_client_manager.get_client('cloudformation')
        return self._cloudformation_client

    def exists(self, stack_name: str) -> bool:
        """Check whether a stack exists.

        Raises:
            DeployerError: When the stack cannot be described
        """
        try:
            self._describe_stack(stack_name)
            return True
        except StackNotFoundError:
            return False

    def _describe_stack(self, stack_name: str, client=None) -> Dict[str, Any]:
        client = client or self.cloudformation_client
        try:
            response = client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if _is_not_found(e):
                raise StackNotFoundError(stack_name)
            raise DeployerError(f"describe stack {stack_name}: {e}") from e
        return response['Stacks'][0]

    def deploy_and_render_environment(self, progress: Spinner,
                                      env_input: CreateEnvironmentInput) -> None:
        """Render the environment template and create its stack.

        Args:
            progress: Progress sink for the stack creation
            env_input: Environment to deploy

        Raises:
            StackAlreadyExistsError: When the environment stack already exists
            EnvironmentDeploymentError: When the stack fails to create
        """
        stack_name = stack_name_for_env(env_input.app.name, env_input.name)
        body = self.template.parse_env(env_input)

        tags = dict(env_input.additional_tags)
        tags[APP_TAG_KEY] = env_input.app.name
        tags[ENV_TAG_KEY] = env_input.name

        progress.start(f"Creating the infrastructure for stack {stack_name}")
        try:
            self.cloudformation_client.create_stack(
                StackName=stack_name,
                TemplateBody=str(body),
                Parameters=self._env_parameters(env_input),
                Tags=[{'Key': k, 'Value': v} for k, v in sorted(tags.items())],
                Capabilities=CAPABILITIES,
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'AlreadyExistsException':
                progress.stop(f"⏭️  Stack {stack_name} already exists")
                raise StackAlreadyExistsError(stack_name)
            progress.stop(failure_message(f"Failed to create stack {stack_name}"))
            raise EnvironmentDeploymentError(f"create stack {stack_name}: {e}") from e

        try:
            waiter = self.cloudformation_client.get_waiter('stack_create_complete')
            waiter.wait(
                StackName=stack_name,
                WaiterConfig={
                    'Delay': self.POLLING_INTERVAL_SECONDS,
                    'MaxAttempts': self.DEFAULT_TIMEOUT_SECONDS // self.POLLING_INTERVAL_SECONDS,
                },
            )
        except WaiterError as e:
            progress.stop(failure_message(f"Failed to create stack {stack_name}"))
            reason = self._stack_status_reason(stack_name) or str(e)
            raise EnvironmentDeploymentError(f"stack {stack_name} did not complete: {reason}") from e
        progress.stop(success_message(f"Created the infrastructure for stack {stack_name}"))

    def _env_parameters(self, env_input: CreateEnvironmentInput) -> List[Dict[str, str]]:
        app = env_input.app
        dns_delegation_role = ""
        if app.has_dns_delegation() and app.account_principal_arn:
            account = app.account_principal_arn.split(':')[4]
            partition = app.account_principal_arn.split(':')[1]
            dns_delegation_role = f"arn:{partition}:iam::{account}:role/{app.name}-DNSDelegationRole"
        params = {
            'AppName': app.name,
            'EnvironmentName': env_input.name,
            'ToolsAccountPrincipalARN': app.account_principal_arn,
            'AppDNSName': app.dns_name,
            'AppDNSDelegationRole': dns_delegation_role,
        }
        return [{'ParameterKey': k, 'ParameterValue': v} for k, v in params.items()]

    def _stack_status_reason(self, stack_name: str) -> Optional[str]:
        try:
            return self._describe_stack(stack_name).get('StackStatusReason')
        except DeployerError:
            return None

    def add_env_to_app(self, opts: AddEnvToAppOpts) -> None:
        """Add the environment's account and region to the application stack set.

        Nothing is done when the stack set already has an instance there.

        Raises:
            StackSetError: When the stack set instance cannot be created
        """
        stack_set = app_stack_set_name(opts.app.name)
        client = self.cloudformation_client
        try:
            instances = client.list_stack_instances(
                StackSetName=stack_set,
                StackInstanceAccount=opts.env_account_id,
                StackInstanceRegion=opts.env_region,
            )
            if instances.get('Summaries'):
                return

            response = client.create_stack_instances(
                StackSetName=stack_set,
                Accounts=[opts.env_account_id],
                Regions=[opts.env_region],
            )
        except ClientError as e:
            raise StackSetError(f"add account {opts.env_account_id} and region {opts.env_region} to stack set {stack_set}: {e}") from e

        self._wait_for_stack_set_operation(stack_set, response['OperationId'])

    def _wait_for_stack_set_operation(self, stack_set: str, operation_id: str,
                                      timeout_seconds: Optional[int] = None) -> None:
        if timeout_seconds is None:
            timeout_seconds = self.DEFAULT_TIMEOUT_SECONDS

        start_time = time.time()
        while True:
            try:
                response = self.cloudformation_client.describe_stack_set_operation(
                    StackSetName=stack_set, OperationId=operation_id
                )
            except ClientError as e:
                raise StackSetError(f"describe operation {operation_id} of stack set {stack_set}: {e}") from e

            status = response['StackSetOperation']['Status']
            if status == 'SUCCEEDED':
                return
            if status in ('FAILED', 'STOPPED'):
                reason = response['StackSetOperation'].get('StatusReason', status)
                raise StackSetError(f"operation {operation_id} of stack set {stack_set} {status.lower()}: {reason}")

            if time.time() - start_time >= timeout_seconds:
                raise StackSetError(
                    f"operation {operation_id} of stack set {stack_set} timed out after {timeout_seconds // 60} minutes"
                )
            time.sleep(self.POLLING_INTERVAL_SECONDS)

    def delegate_dns_permissions(self, app: Application, account_id: str) -> None:
        """Allow an account to manage records under the application's domain.

        Raises:
            DeployerError: When the application roles stack cannot be updated
        """
        stack_name = app_roles_stack_name(app.name)
        stack = self._describe_stack(stack_name)

        parameters = []
        accounts: List[str] = []
        for param in stack.get('Parameters', []):
            if param['ParameterKey'] == DNS_DELEGATION_ACCOUNTS_PARAM:
                accounts = [a for a in param.get('ParameterValue', '').split(',') if a]
                continue
            parameters.append({'ParameterKey': param['ParameterKey'], 'UsePreviousValue': True})

        if account_id in accounts:
            return
        accounts.append(account_id)
        parameters.append({
            'ParameterKey': DNS_DELEGATION_ACCOUNTS_PARAM,
            'ParameterValue': ','.join(accounts),
        })

        try:
            self.cloudformation_client.update_stack(
                StackName=stack_name,
                UsePreviousTemplate=True,
                Parameters=parameters,
                Capabilities=CAPABILITIES,
            )
        except ClientError as e:
            if 'No updates are to be performed' in e.response['Error'].get('Message', ''):
                return
            raise DeployerError(f"update stack {stack_name}: {e}") from e

        try:
            waiter = self.cloudformation_client.get_waiter('stack_update_complete')
            waiter.wait(StackName=stack_name)
        except WaiterError as e:
            raise DeployerError(f"stack {stack_name} did not finish updating: {e}") from e

    def get_environment(self, app: str, env: str) -> Environment:
        """Read a deployed environment from its stack outputs.

        Raises:
            StackNotFoundError: When the environment stack does not exist
        """
        stack_name = stack_name_for_env(app, env)
        stack = self._describe_stack(stack_name)
        outputs = {o['OutputKey']: o['OutputValue'] for o in stack.get('Outputs', [])}

        # arn:partition:cloudformation:region:account:stack/name/id
        arn_parts = stack['StackId'].split(':')
        region, account_id = arn_parts[3], arn_parts[4]
        return Environment(
            app=app,
            name=env,
            region=region,
            account_id=account_id,
            registry_url=f"{account_id}.dkr.ecr.{region}.amazonaws.com",
            execution_role_arn=outputs.get('CFNExecutionRoleARN', ''),
            manager_role_arn=outputs.get('EnvironmentManagerRoleARN', ''),
        )

    def get_app_resources_by_region(self, app: Application, region: str) -> AppRegionalResources:
        """Get the application's resources in a region, such as its bucket.

        Raises:
            DeployerError: When the application has no resources in the region
        """
        stack_set = app_stack_set_name(app.name)
        try:
            response = self.cloudformation_client.list_stack_instances(
                StackSetName=stack_set, StackInstanceRegion=region
            )
        except ClientError as e:
            raise DeployerError(f"list instances of stack set {stack_set}: {e}") from e

        summaries = [s for s in response.get('Summaries', []) if s.get('StackId')]
        if not summaries:
            raise DeployerError(f"no regional resources for application {app.name} in region {region}")

        regional_client = self.aws_client_manager.get_client('cloudformation', region)
        stack = self._describe_stack(summaries[0]['StackId'], client=regional_client)
        outputs = {o['OutputKey']: o['OutputValue'] for o in stack.get('Outputs', [])}
        if 'PipelineBucket' not in outputs:
            raise DeployerError(f"regional stack of application {app.name} in {region} has no bucket output")
        return AppRegionalResources(
            region=region,
            s3_bucket=outputs['PipelineBucket'],
            kms_key_arn=outputs.get('KMSKeyARN', ''),
        )
