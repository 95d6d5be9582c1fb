"""IAM role management for environment provisioning.

This module creates the ECS service-linked role and removes roles that an
environment stack retains after it is deleted.
"""

from typing import Dict
from botocore.exceptions import ClientError

from envforge.core.aws_client import AWSClientManager


ECS_SERVICE_NAME = "ecs.amazonaws.com"


class IAMRoleError(Exception):
    """Base exception for IAM role operations."""
    pass


class RoleAlreadyExistsError(IAMRoleError):
    """Raised when a role being created already exists."""
    pass


class IAMRolesManager:
    """Manages IAM roles in the environment's account."""

    def __init__(self, aws_client: AWSClientManager) -> None:
        """Initialize IAM roles manager.

        Args:
            aws_client: Client manager bound to the environment's account
        """
        self.aws_client = aws_client
        self._iam_client = None

    def _get_client(self):
        """Get IAM client with caching.

        Returns:
            Configured IAM client
        """
        if self._iam_client is None:
            self._iam_client = self.aws_client.get_client(
                'iam',
                self.aws_client.get_current_region()
            )
        return self._iam_client

    def create_ecs_service_linked_role(self) -> None:
        """Create the service-linked role ECS uses to manage clusters.

        Raises:
            RoleAlreadyExistsError: When the role already exists
            IAMRoleError: When creation fails for another reason
        """
        try:
            self._get_client().create_service_linked_role(AWSServiceName=ECS_SERVICE_NAME)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            message = e.response['Error'].get('Message', '')
            if error_code == 'InvalidInput' and 'has been taken' in message:
                raise RoleAlreadyExistsError(f"Service-linked role for {ECS_SERVICE_NAME} already exists")
            raise IAMRoleError(f"Failed to create service-linked role for {ECS_SERVICE_NAME}: {e}")

    def list_role_tags(self, role_name: str) -> Dict[str, str]:
        """Get the tags of a role.

        Args:
            role_name: Name of the role

        Returns:
            Mapping of tag keys to values

        Raises:
            IAMRoleError: When the tags cannot be listed
        """
        tags: Dict[str, str] = {}
        try:
            client = self._get_client()
            kwargs = {'RoleName': role_name}
            while True:
                response = client.list_role_tags(**kwargs)
                for tag in response.get('Tags', []):
                    tags[tag['Key']] = tag['Value']
                if not response.get('IsTruncated'):
                    break
                kwargs['Marker'] = response['Marker']
        except ClientError as e:
            raise IAMRoleError(f"Failed to list tags for role {role_name}: {e}")
        return tags

    def delete_role(self, role_name: str) -> None:
        """Delete a role after removing its policies.

        Deleting a role that does not exist succeeds.

        Raises:
            IAMRoleError: When the role cannot be deleted
        """
        client = self._get_client()
        try:
            attached = client.list_attached_role_policies(RoleName=role_name)
            for policy in attached.get('AttachedPolicies', []):
                client.detach_role_policy(RoleName=role_name, PolicyArn=policy['PolicyArn'])

            inline = client.list_role_policies(RoleName=role_name)
            for policy_name in inline.get('PolicyNames', []):
                client.delete_role_policy(RoleName=role_name, PolicyName=policy_name)

            client.delete_role(RoleName=role_name)
        except ClientError as e:
            if e.response['Error']['Code'] == 'NoSuchEntity':
                return
            raise IAMRoleError(f"Failed to delete role {role_name}: {e}")
