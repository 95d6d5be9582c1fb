"""Resolution of the session an environment is created with.

Exactly one credential source is used, in priority order: a named
profile, static temporary credentials, then interactive selection. The
region is then overlaid from an explicit flag, else the session's
configured region, else a prompt.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from envforge.core.aws_client import AWSClientManager, SessionProvider
from envforge.core.config import DEFAULT_REGION, ConfigurationError
from envforge.core.interactive import Prompter
from envforge.environment.selector import CredsSelector


logger = logging.getLogger(__name__)

PROFILE_FLAG = "profile"
ACCESS_KEY_ID_FLAG = "aws-access-key-id"
SECRET_ACCESS_KEY_FLAG = "aws-secret-access-key"
SESSION_TOKEN_FLAG = "aws-session-token"

CREDS_PROMPT = "Which credentials would you like to use to create {env}?"
CREDS_HELP = "The credentials are used to create your environment in an AWS account and region."
REGION_PROMPT = "Which region?"


@dataclass
class TempCredsVars:
    """Static temporary credentials given as flags."""

    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""

    def is_set(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


def validate_credentials(profile: str, temp_creds: TempCredsVars) -> None:
    """Reject a named profile combined with any static credential.

    Raises:
        ConfigurationError: When both sources are given
    """
    if not profile:
        return
    conflicts = (
        (temp_creds.access_key_id, ACCESS_KEY_ID_FLAG),
        (temp_creds.secret_access_key, SECRET_ACCESS_KEY_FLAG),
        (temp_creds.session_token, SESSION_TOKEN_FLAG),
    )
    for value, flag in conflicts:
        if value:
            raise ConfigurationError(f"cannot specify both --{PROFILE_FLAG} and --{flag}")


def resolve_region(session: AWSClientManager, region: Optional[str], prompter: Prompter,
                   default_region: str = DEFAULT_REGION) -> str:
    """Bind a session to the environment's region.

    Args:
        session: Session of the environment's account
        region: Region given as a flag, if any
        prompter: Asks for the region when nothing else decides it
        default_region: Region offered by the prompt

    Returns:
        The region the session is now bound to
    """
    resolved = region or session.region
    if not resolved:
        resolved = prompter.get(REGION_PROMPT, default=default_region)
    session.region = resolved
    return resolved


class SessionResolver:
    """Builds the environment's session from flags or interactive selection."""

    def __init__(self, session_provider: SessionProvider, prompter: Prompter,
                 creds_selector: Optional[CredsSelector] = None,
                 default_region: str = DEFAULT_REGION) -> None:
        self.session_provider = session_provider
        self.prompter = prompter
        self.creds_selector = creds_selector or CredsSelector(prompter, session_provider)
        self.default_region = default_region

    def resolve(self, env_name: str, profile: str = "",
                temp_creds: Optional[TempCredsVars] = None,
                region: Optional[str] = None) -> AWSClientManager:
        """Build the session and bind it to a region.

        Raises:
            ConfigurationError: When both a profile and static credentials are given
        """
        temp_creds = temp_creds or TempCredsVars()
        validate_credentials(profile, temp_creds)

        if profile:
            logger.debug(f"Creating session from profile {profile}")
            session = self.session_provider.from_profile(profile)
        elif temp_creds.is_set():
            logger.debug("Creating session from static credentials")
            session = self.session_provider.from_static_creds(
                temp_creds.access_key_id,
                temp_creds.secret_access_key,
                temp_creds.session_token or None,
            )
        else:
            session = self.creds_selector.creds(CREDS_PROMPT.format(env=env_name), CREDS_HELP)

        resolve_region(session, region, self.prompter, self.default_region)
        return session
