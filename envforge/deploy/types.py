"""Inputs and outputs exchanged with the deployer."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from envforge.store.models import AdjustVPC, Application, ImportVPC


LATEST_ENV_TEMPLATE_VERSION = "v1.0.0"


@dataclass
class AppInformation:
    """Application details an environment stack links back to."""

    name: str
    dns_name: str = ""
    account_principal_arn: str = ""

    def has_dns_delegation(self) -> bool:
        return bool(self.dns_name)


@dataclass
class CreateEnvironmentInput:
    """Everything needed to render and deploy an environment stack."""

    name: str
    app: AppInformation
    prod: bool = False
    additional_tags: Dict[str, str] = field(default_factory=dict)
    custom_resources_urls: Dict[str, str] = field(default_factory=dict)
    import_vpc_config: Optional[ImportVPC] = None
    adjust_vpc_config: Optional[AdjustVPC] = None
    version: str = LATEST_ENV_TEMPLATE_VERSION


@dataclass
class AddEnvToAppOpts:
    """Location of a new environment to register with its application."""

    app: Application
    env_name: str
    env_region: str
    env_account_id: str


@dataclass
class AppRegionalResources:
    """Resources an application provisions in every region it spans."""

    region: str
    s3_bucket: str
    kms_key_arn: str = ""
