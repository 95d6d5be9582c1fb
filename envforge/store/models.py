"""Records persisted by envforge and the network customization variant.

The JSON field names of these records are shared with other tools that
read the parameter store, so ``to_dict``/``from_dict`` keep them stable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from envforge.core.config import ConfigurationError


@dataclass
class ImportVPC:
    """Existing VPC resources to use instead of creating new ones."""

    id: str
    public_subnet_ids: List[str] = field(default_factory=list)
    private_subnet_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "publicSubnetIDs": list(self.public_subnet_ids),
            "privateSubnetIDs": list(self.private_subnet_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportVPC":
        return cls(
            id=data.get("id", ""),
            public_subnet_ids=list(data.get("publicSubnetIDs") or []),
            private_subnet_ids=list(data.get("privateSubnetIDs") or []),
        )


@dataclass
class AdjustVPC:
    """Parameters for the VPC resources generated with an environment."""

    cidr: str
    azs: List[str] = field(default_factory=list)
    public_subnet_cidrs: List[str] = field(default_factory=list)
    private_subnet_cidrs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cidr": self.cidr,
            "availabilityZoneNames": list(self.azs),
            "publicSubnetCIDRs": list(self.public_subnet_cidrs),
            "privateSubnetCIDRs": list(self.private_subnet_cidrs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdjustVPC":
        return cls(
            cidr=data.get("cidr", ""),
            azs=list(data.get("availabilityZoneNames") or []),
            public_subnet_cidrs=list(data.get("publicSubnetCIDRs") or []),
            private_subnet_cidrs=list(data.get("privateSubnetCIDRs") or []),
        )


@dataclass
class CustomizeEnv:
    """Custom network configuration recorded with an environment.

    Exactly one of ``import_vpc`` and ``adjust_vpc`` is set.
    """

    import_vpc: Optional[ImportVPC] = None
    adjust_vpc: Optional[AdjustVPC] = None

    def __post_init__(self) -> None:
        if self.import_vpc is not None and self.adjust_vpc is not None:
            raise ConfigurationError("cannot specify both import vpc flags and configure vpc flags")
        if self.import_vpc is None and self.adjust_vpc is None:
            raise ConfigurationError("custom environment configuration requires import or configure vpc settings")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.import_vpc is not None:
            data["importVPC"] = self.import_vpc.to_dict()
        if self.adjust_vpc is not None:
            data["adjustVPC"] = self.adjust_vpc.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomizeEnv":
        import_vpc = data.get("importVPC")
        adjust_vpc = data.get("adjustVPC")
        return cls(
            import_vpc=ImportVPC.from_dict(import_vpc) if import_vpc else None,
            adjust_vpc=AdjustVPC.from_dict(adjust_vpc) if adjust_vpc else None,
        )


def new_customize_env(
    import_vpc: Optional[ImportVPC], adjust_vpc: Optional[AdjustVPC]
) -> Optional[CustomizeEnv]:
    """Build the custom config record, or None when defaults are used."""
    if import_vpc is None and adjust_vpc is None:
        return None
    return CustomizeEnv(import_vpc=import_vpc, adjust_vpc=adjust_vpc)


class NetworkMode(Enum):
    """How the network of a new environment is obtained."""

    DEFAULT = "default"
    IMPORT = "import"
    ADJUST = "adjust"


@dataclass(frozen=True)
class NetworkCustomization:
    """Tagged network choice for a new environment.

    Use the ``default``, ``importing`` and ``adjusting`` constructors; the
    payload that does not belong to the mode is always None.
    """

    mode: NetworkMode
    import_vpc: Optional[ImportVPC] = None
    adjust_vpc: Optional[AdjustVPC] = None

    def __post_init__(self) -> None:
        expected = {
            NetworkMode.DEFAULT: (False, False),
            NetworkMode.IMPORT: (True, False),
            NetworkMode.ADJUST: (False, True),
        }[self.mode]
        if (self.import_vpc is not None, self.adjust_vpc is not None) != expected:
            raise ConfigurationError(
                f"network customization in {self.mode.value} mode has mismatched settings"
            )

    @classmethod
    def default(cls) -> "NetworkCustomization":
        return cls(NetworkMode.DEFAULT)

    @classmethod
    def importing(cls, import_vpc: ImportVPC) -> "NetworkCustomization":
        return cls(NetworkMode.IMPORT, import_vpc=import_vpc)

    @classmethod
    def adjusting(cls, adjust_vpc: AdjustVPC) -> "NetworkCustomization":
        return cls(NetworkMode.ADJUST, adjust_vpc=adjust_vpc)

    def to_customize_env(self) -> Optional[CustomizeEnv]:
        """Convert to the record stored with the environment."""
        if self.mode is NetworkMode.DEFAULT:
            return None
        return CustomizeEnv(import_vpc=self.import_vpc, adjust_vpc=self.adjust_vpc)


@dataclass
class Environment:
    """A deployment environment in an application."""

    app: str
    name: str
    region: str = ""
    account_id: str = ""
    prod: bool = False
    registry_url: str = ""
    execution_role_arn: str = ""
    manager_role_arn: str = ""
    custom_config: Optional[CustomizeEnv] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "app": self.app,
            "name": self.name,
            "region": self.region,
            "accountID": self.account_id,
            "prod": self.prod,
            "registryURL": self.registry_url,
            "executionRoleARN": self.execution_role_arn,
            "managerRoleARN": self.manager_role_arn,
        }
        if self.custom_config is not None:
            data["customConfig"] = self.custom_config.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Environment":
        custom_config = data.get("customConfig")
        return cls(
            app=data["app"],
            name=data["name"],
            region=data.get("region", ""),
            account_id=data.get("accountID", ""),
            prod=bool(data.get("prod", False)),
            registry_url=data.get("registryURL", ""),
            execution_role_arn=data.get("executionRoleARN", ""),
            manager_role_arn=data.get("managerRoleARN", ""),
            custom_config=CustomizeEnv.from_dict(custom_config) if custom_config else None,
        )


@dataclass
class Application:
    """An application grouping environments and workloads."""

    name: str
    account_id: str
    domain: str = ""
    tags: Dict[str, str] = field(default_factory=dict)

    def requires_dns_delegation(self) -> bool:
        """Whether environments need DNS permissions shared from the app account."""
        return bool(self.domain)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "account": self.account_id}
        if self.domain:
            data["domainName"] = self.domain
        if self.tags:
            data["tags"] = dict(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Application":
        return cls(
            name=data["name"],
            account_id=data.get("account", ""),
            domain=data.get("domainName", ""),
            tags=dict(data.get("tags") or {}),
        )
