"""Interactive selection of AWS resources.

Selectors list resources through a client and let the user pick among
them with the prompter.
"""

import logging
from typing import List

from envforge.core.aws_client import AWSClientManager, SessionProvider
from envforge.core.interactive import Prompter
from envforge.deploy.ec2 import EC2Client


logger = logging.getLogger(__name__)

TEMP_CREDS_OPTION = "[Enter temporary credentials]"

ACCESS_KEY_ID_PROMPT = "What's your AWS Access Key ID?"
SECRET_ACCESS_KEY_PROMPT = "What's your AWS Secret Access Key?"
SESSION_TOKEN_PROMPT = "What's your AWS Session Token?"


class SelectorError(Exception):
    """Base exception for resource selection."""
    pass


class VPCNotFoundError(SelectorError):
    """Raised when there is no VPC to select from."""

    def __init__(self) -> None:
        super().__init__("no VPC found")


class SubnetsNotFoundError(SelectorError):
    """Raised when a VPC has no subnet of the requested kind."""

    def __init__(self, vpc_id: str, public: bool) -> None:
        self.vpc_id = vpc_id
        self.public = public
        kind = "public" if public else "private"
        super().__init__(f"no {kind} subnets found in VPC {vpc_id}")


class EC2Selector:
    """Selects a VPC and its subnets."""

    def __init__(self, prompter: Prompter, ec2_client: EC2Client) -> None:
        self.prompter = prompter
        self.ec2_client = ec2_client

    def vpc(self, message: str, help_text: str = "") -> str:
        """Ask the user to pick one VPC.

        Returns:
            ID of the selected VPC

        Raises:
            VPCNotFoundError: When the region has no VPC
        """
        vpcs = self.ec2_client.list_vpcs()
        if not vpcs:
            raise VPCNotFoundError()

        options = [str(vpc) for vpc in vpcs]
        selected = self.prompter.select_one(message, help_text, options)
        return vpcs[options.index(selected)].id

    def subnets(self, message: str, help_text: str, vpc_id: str, public: bool) -> List[str]:
        """Ask the user to pick public or private subnets of a VPC.

        Any number of subnets can be picked, including none; callers check
        the count they need.

        Returns:
            IDs of the selected subnets

        Raises:
            SubnetsNotFoundError: When the VPC has no subnet of that kind
        """
        subnets = self.ec2_client.list_subnets(vpc_id, public=public)
        if not subnets:
            raise SubnetsNotFoundError(vpc_id, public)

        options = [str(subnet) for subnet in subnets]
        selected = self.prompter.multi_select(message, help_text, options)
        return [subnets[options.index(option)].id for option in selected]


class CredsSelector:
    """Selects the credentials an environment is created with."""

    def __init__(self, prompter: Prompter, session_provider: SessionProvider) -> None:
        self.prompter = prompter
        self.session_provider = session_provider

    def creds(self, message: str, help_text: str = "") -> AWSClientManager:
        """Ask the user for a named profile or temporary credentials.

        Returns:
            Client manager over the selected credentials
        """
        profiles = self.session_provider.available_profiles()
        selected = self.prompter.select_one(message, help_text, [TEMP_CREDS_OPTION] + profiles)
        if selected != TEMP_CREDS_OPTION:
            logger.debug(f"Using named profile {selected}")
            return self.session_provider.from_profile(selected)

        access_key_id = self.prompter.get(ACCESS_KEY_ID_PROMPT)
        secret_access_key = self.prompter.get(SECRET_ACCESS_KEY_PROMPT)
        # The session token is optional for long-term keys.
        session_token = self.prompter.get(SESSION_TOKEN_PROMPT, validator=lambda value: None)
        return self.session_provider.from_static_creds(
            access_key_id, secret_access_key, session_token or None
        )
