"""Deterministic names of the AWS resources owned by an environment.

Every name is recomputed from the application and environment names;
none of them is ever stored.
"""

from typing import Tuple


# Tags applied to every resource envforge creates.
APP_TAG_KEY = "envforge-application"
ENV_TAG_KEY = "envforge-environment"

EXECUTION_ROLE_SUFFIX = "CFNExecutionRole"
MANAGER_ROLE_SUFFIX = "EnvManagerRole"


def stack_name_for_env(app: str, env: str) -> str:
    """Name of the CloudFormation stack of an environment."""
    return f"{app}-{env}"


def execution_role_name(app: str, env: str) -> str:
    """Name of the role CloudFormation assumes to modify the environment stack."""
    return f"{stack_name_for_env(app, env)}-{EXECUTION_ROLE_SUFFIX}"


def manager_role_name(app: str, env: str) -> str:
    """Name of the role assumed to manage the environment and its workloads."""
    return f"{stack_name_for_env(app, env)}-{MANAGER_ROLE_SUFFIX}"


def env_role_names(app: str, env: str) -> Tuple[str, str]:
    """Names of the IAM roles retained after an environment stack is deleted."""
    return execution_role_name(app, env), manager_role_name(app, env)


def app_stack_set_name(app: str) -> str:
    """Name of the stack set holding the application's regional resources."""
    return f"{app}-infrastructure"


def app_roles_stack_name(app: str) -> str:
    """Name of the stack holding the application's account-level roles."""
    return f"{app}-infrastructure-roles"
