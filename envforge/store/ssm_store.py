"""Application and environment records in SSM Parameter Store.

Each record is a JSON document stored as a String parameter whose name
is derived from the application and environment names.
"""

import json
import logging
from typing import List
from botocore.exceptions import ClientError

from envforge.core.aws_client import AWSClientManager
from envforge.core.config import DEFAULT_PARAMETER_PREFIX
from envforge.store.models import Application, Environment


logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a parameter store operation fails."""
    pass


class NoSuchApplicationError(StoreError):
    """Raised when an application record does not exist."""

    def __init__(self, application_name: str) -> None:
        self.application_name = application_name
        super().__init__(f"couldn't find an application named {application_name}")


class NoSuchEnvironmentError(StoreError):
    """Raised when an environment record does not exist."""

    def __init__(self, application_name: str, environment_name: str) -> None:
        self.application_name = application_name
        self.environment_name = environment_name
        super().__init__(
            f"couldn't find environment {environment_name} in the application {application_name}"
        )


class Store:
    """CRUD access to application and environment records."""

    def __init__(self, aws_client: AWSClientManager,
                 parameter_prefix: str = DEFAULT_PARAMETER_PREFIX) -> None:
        """Initialize the store.

        Args:
            aws_client: Client manager for the account holding the records
            parameter_prefix: Root path of all parameters
        """
        self.aws_client = aws_client
        self.parameter_prefix = parameter_prefix.rstrip("/")
        self._ssm_client = None

    def _get_client(self):
        """Get SSM client with caching."""
        if self._ssm_client is None:
            self._ssm_client = self.aws_client.get_client("ssm")
        return self._ssm_client

    def application_path(self, app_name: str) -> str:
        return f"{self.parameter_prefix}/applications/{app_name}"

    def environments_path(self, app_name: str) -> str:
        return f"{self.application_path(app_name)}/environments/"

    def environment_path(self, app_name: str, env_name: str) -> str:
        return f"{self.environments_path(app_name)}{env_name}"

    def create_application(self, application: Application) -> None:
        """Create an application record. Skip if it already exists."""
        try:
            self._get_client().put_parameter(
                Name=self.application_path(application.name),
                Description="envforge application",
                Type="String",
                Value=json.dumps(application.to_dict()),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterAlreadyExists":
                return
            raise StoreError(f"create application {application.name}: {e}") from e

    def get_application(self, app_name: str) -> Application:
        """Get an application by name.

        Raises:
            NoSuchApplicationError: When no application has this name
        """
        try:
            response = self._get_client().get_parameter(Name=self.application_path(app_name))
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterNotFound":
                raise NoSuchApplicationError(app_name)
            raise StoreError(f"get application {app_name}: {e}") from e

        try:
            return Application.from_dict(json.loads(response["Parameter"]["Value"]))
        except (ValueError, KeyError) as e:
            raise StoreError(f"read configuration for application {app_name}: {e}") from e

    def list_applications(self) -> List[Application]:
        """List all applications, sorted by name."""
        applications = []
        try:
            paginator = self._get_client().get_paginator("get_parameters_by_path")
            pages = paginator.paginate(Path=f"{self.parameter_prefix}/applications/", Recursive=False)
            for page in pages:
                for parameter in page["Parameters"]:
                    applications.append(Application.from_dict(json.loads(parameter["Value"])))
        except ClientError as e:
            raise StoreError(f"list applications: {e}") from e
        except (ValueError, KeyError) as e:
            raise StoreError(f"read application configuration: {e}") from e

        return sorted(applications, key=lambda app: app.name)

    def create_environment(self, environment: Environment) -> None:
        """Create an environment within an existing application.

        Creation is skipped when the environment already exists: the first
        record written is kept.

        Raises:
            NoSuchApplicationError: When the application does not exist
            StoreError: When the record cannot be written
        """
        self.get_application(environment.app)

        try:
            self._get_client().put_parameter(
                Name=self.environment_path(environment.app, environment.name),
                Description=f"The {environment.name} deployment stage",
                Type="String",
                Value=json.dumps(environment.to_dict()),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterAlreadyExists":
                logger.info(
                    f"Environment {environment.name} already exists in application {environment.app}"
                )
                return
            raise StoreError(
                f"create environment {environment.name} in application {environment.app}: {e}"
            ) from e

    def get_environment(self, app_name: str, env_name: str) -> Environment:
        """Get an environment of an application by name.

        Raises:
            NoSuchEnvironmentError: When the environment does not exist
        """
        try:
            response = self._get_client().get_parameter(
                Name=self.environment_path(app_name, env_name)
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterNotFound":
                raise NoSuchEnvironmentError(app_name, env_name)
            raise StoreError(f"get environment {env_name} in application {app_name}: {e}") from e

        try:
            return Environment.from_dict(json.loads(response["Parameter"]["Value"]))
        except (ValueError, KeyError) as e:
            raise StoreError(
                f"read configuration for environment {env_name} in application {app_name}: {e}"
            ) from e

    def list_environments(self, app_name: str) -> List[Environment]:
        """List all environments of an application.

        Returns:
            Non-production environments before production ones, each
            group sorted by name
        """
        environments = []
        try:
            paginator = self._get_client().get_paginator("get_parameters_by_path")
            for page in paginator.paginate(Path=self.environments_path(app_name), Recursive=False):
                for parameter in page["Parameters"]:
                    environments.append(Environment.from_dict(json.loads(parameter["Value"])))
        except ClientError as e:
            raise StoreError(f"list environments for application {app_name}: {e}") from e
        except (ValueError, KeyError) as e:
            raise StoreError(f"read environment configuration for application {app_name}: {e}") from e

        return sorted(environments, key=lambda env: (env.prod, env.name))

    def delete_environment(self, app_name: str, env_name: str) -> None:
        """Remove an environment record.

        Deleting an environment that does not exist succeeds.
        """
        try:
            self._get_client().delete_parameter(Name=self.environment_path(app_name, env_name))
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterNotFound":
                return
            raise StoreError(f"delete environment {env_name} from application {app_name}: {e}") from e
