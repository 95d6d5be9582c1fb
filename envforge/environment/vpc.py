"""Resolution of the network an environment is created in.

The network comes from one of three mutually exclusive modes: the
defaults, existing resources to import, or generated resources with
adjusted parameters. Flags fill in part of a mode and the resolver
prompts for the rest.
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from envforge.core.config import (
    DEFAULT_PRIVATE_SUBNET_CIDRS,
    DEFAULT_PUBLIC_SUBNET_CIDRS,
    DEFAULT_VPC_CIDR,
    Configuration,
    ConfigurationError,
)
from envforge.core.interactive import Prompter
from envforge.core.validator import parse_cidr_list, validate_cidr, validate_subnets_cidr
from envforge.deploy.ec2 import EC2Client
from envforge.environment.selector import EC2Selector, SubnetsNotFoundError, VPCNotFoundError
from envforge.store.models import AdjustVPC, ImportVPC, NetworkCustomization


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FLAG = "default-config"
MIN_AZS = 2

DEFAULT_ENV_CONFIRM_PROMPT = """Would you like to use the default configuration for a new environment?
    - A new VPC with 2 AZs, 2 public subnets and 2 private subnets
    - A new ECS Cluster
    - New IAM Roles to manage services and jobs in your environment"""
DEFAULT_CONFIG_OPTION = "Yes, use default."
ADJUST_RESOURCES_OPTION = "Yes, but I'd like configure the default resources (CIDR ranges, AZs)."
IMPORT_RESOURCES_OPTION = "No, I'd like to import existing resources (VPC, subnets)."
NETWORK_OPTIONS = [DEFAULT_CONFIG_OPTION, ADJUST_RESOURCES_OPTION, IMPORT_RESOURCES_OPTION]

VPC_SELECT_PROMPT = "Which VPC would you like to use?"
PUBLIC_SUBNETS_SELECT_PROMPT = "Which public subnets would you like to use?"
PUBLIC_SUBNETS_SELECT_HELP = (
    "You may press 'Enter' to skip this step if the services and jobs you deploy "
    "to this environment are not internet-facing."
)
PRIVATE_SUBNETS_SELECT_PROMPT = "Which private subnets would you like to use?"

VPC_CIDR_PROMPT = "What VPC CIDR would you like to use?"
VPC_CIDR_HELP = "CIDR used for your VPC. For example: 10.1.0.0/16"
AZ_PROMPT = "Which availability zones would you like to use?"
AZ_HELP = "Availability zone names that span your resources. For example: us-east-1a,us-east-1b"
PUBLIC_CIDR_PROMPT = "What CIDR would you like to use for your public subnets?"
PUBLIC_CIDR_HELP = "CIDRs used for your public subnets. For example: 10.1.0.0/24,10.1.1.0/24"
PRIVATE_CIDR_PROMPT = "What CIDR would you like to use for your private subnets?"
PRIVATE_CIDR_HELP = "CIDRs used for your private subnets. For example: 10.1.2.0/24,10.1.3.0/24"


@dataclass
class ImportVPCVars:
    """Existing VPC resources given as flags.

    A subnet list of None has not been decided yet; an empty list is a
    decision to import no subnet of that kind.
    """

    id: str = ""
    public_subnet_ids: Optional[List[str]] = None
    private_subnet_ids: Optional[List[str]] = None

    def is_set(self) -> bool:
        if self.id:
            return True
        return bool(self.public_subnet_ids) or bool(self.private_subnet_ids)

    def to_import_vpc(self) -> ImportVPC:
        return ImportVPC(
            id=self.id,
            public_subnet_ids=list(self.public_subnet_ids or []),
            private_subnet_ids=list(self.private_subnet_ids or []),
        )


@dataclass
class AdjustVPCVars:
    """Parameters for generated VPC resources given as flags."""

    cidr: str = ""
    azs: Optional[List[str]] = None
    public_subnet_cidrs: Optional[List[str]] = None
    private_subnet_cidrs: Optional[List[str]] = None

    def is_set(self) -> bool:
        if self.cidr:
            return True
        return any((self.azs, self.public_subnet_cidrs, self.private_subnet_cidrs))

    def to_adjust_vpc(self) -> AdjustVPC:
        return AdjustVPC(
            cidr=str(ipaddress.ip_network(self.cidr, strict=False)),
            azs=list(self.azs or []),
            public_subnet_cidrs=list(self.public_subnet_cidrs or []),
            private_subnet_cidrs=list(self.private_subnet_cidrs or []),
        )


@dataclass
class VPCResolution:
    """Resolved network and the warnings the user should see."""

    network: NetworkCustomization
    warnings: List[str] = field(default_factory=list)


def validate_customized_resources(import_vpc: ImportVPCVars, adjust_vpc: AdjustVPCVars,
                                  default_config: bool = False) -> None:
    """Validate network flags before any AWS call is made.

    Raises:
        ConfigurationError: When modes are combined or counts are too low
    """
    if import_vpc.is_set() and adjust_vpc.is_set():
        raise ConfigurationError("cannot specify both import vpc flags and configure vpc flags")
    if (import_vpc.is_set() or adjust_vpc.is_set()) and default_config:
        raise ConfigurationError(f"cannot import or configure vpc if --{DEFAULT_CONFIG_FLAG} is set")

    if import_vpc.is_set():
        # Passing a VPC without subnets is allowed; we won't prompt for more
        # subnets of a kind once any were passed.
        if import_vpc.public_subnet_ids is not None and len(import_vpc.public_subnet_ids) == 1:
            raise ConfigurationError("at least two public subnets must be imported to enable Load Balancing")
        if import_vpc.private_subnet_ids is not None and len(import_vpc.private_subnet_ids) == 1:
            raise ConfigurationError("at least two private subnets must be imported")

    if adjust_vpc.is_set():
        if adjust_vpc.cidr:
            try:
                validate_cidr(adjust_vpc.cidr)
            except ValueError as e:
                raise ConfigurationError(str(e))
        if adjust_vpc.azs is not None and len(adjust_vpc.azs) == 1:
            raise ConfigurationError("at least two availability zones must be provided to enable Load Balancing")
        if adjust_vpc.azs:
            for kind, cidrs in (("public", adjust_vpc.public_subnet_cidrs),
                                ("private", adjust_vpc.private_subnet_cidrs)):
                if cidrs is None:
                    continue
                try:
                    validate_subnets_cidr(len(adjust_vpc.azs), kind)(",".join(cidrs))
                except ValueError as e:
                    raise ConfigurationError(str(e))


class VPCResolver:
    """Decides the network of a new environment.

    ``resolve`` fills the given flag variables in place, so resolving the
    same variables again neither prompts nor calls AWS.
    """

    def __init__(self, prompter: Prompter, ec2_client: EC2Client,
                 selector: Optional[EC2Selector] = None,
                 config: Optional[Configuration] = None,
                 region: str = "") -> None:
        self.prompter = prompter
        self.ec2_client = ec2_client
        self.selector = selector or EC2Selector(prompter, ec2_client)
        self.config = config
        self.region = region
        self._dns_verified: Set[str] = set()

    def resolve(self, import_vpc: ImportVPCVars, adjust_vpc: AdjustVPCVars,
                default_config: bool = False) -> VPCResolution:
        """Resolve the network from flags, prompting for what is missing.

        Raises:
            ConfigurationError: When the flags conflict or resources are insufficient
        """
        validate_customized_resources(import_vpc, adjust_vpc, default_config)

        if default_config:
            return VPCResolution(NetworkCustomization.default())
        if import_vpc.is_set():
            return self._resolve_import(import_vpc)
        if adjust_vpc.is_set():
            return self._resolve_adjust(adjust_vpc)

        choice = self.prompter.select_one(DEFAULT_ENV_CONFIRM_PROMPT, "", NETWORK_OPTIONS)
        if choice == IMPORT_RESOURCES_OPTION:
            return self._resolve_import(import_vpc)
        if choice == ADJUST_RESOURCES_OPTION:
            return self._resolve_adjust(adjust_vpc)
        return VPCResolution(NetworkCustomization.default())

    def _resolve_import(self, import_vpc: ImportVPCVars) -> VPCResolution:
        warnings: List[str] = []
        if not import_vpc.id:
            try:
                import_vpc.id = self.selector.vpc(VPC_SELECT_PROMPT)
            except VPCNotFoundError as e:
                print("❌ No existing VPCs were found. You can either:")
                print("   • Create a new VPC first and then import it.")
                print("   • Use the default environment configuration.")
                raise ConfigurationError(f"select VPC: {e}") from e

        self._verify_dns_support(import_vpc.id)

        if import_vpc.public_subnet_ids is None:
            try:
                public_subnets = self.selector.subnets(
                    PUBLIC_SUBNETS_SELECT_PROMPT, PUBLIC_SUBNETS_SELECT_HELP, import_vpc.id, public=True
                )
            except SubnetsNotFoundError:
                warning = (
                    f"No existing public subnets were found in VPC {import_vpc.id}. "
                    "If you proceed without at least two public subnets, you will not be able "
                    "to deploy Load Balanced Web Services in this environment."
                )
                logger.warning(warning)
                warnings.append(warning)
                public_subnets = []
            if len(public_subnets) == 1:
                raise ConfigurationError(
                    "select public subnets: at least two public subnets must be selected to enable Load Balancing"
                )
            import_vpc.public_subnet_ids = public_subnets

        if import_vpc.private_subnet_ids is None:
            try:
                private_subnets = self.selector.subnets(
                    PRIVATE_SUBNETS_SELECT_PROMPT, "", import_vpc.id, public=False
                )
            except SubnetsNotFoundError as e:
                print(f"❌ No existing private subnets were found in VPC {import_vpc.id}. You can either:")
                print("   • Create new private subnets and then import them.")
                print("   • Use the default environment configuration.")
                raise ConfigurationError(f"select private subnets: {e}") from e
            if len(private_subnets) < 2:
                raise ConfigurationError("select private subnets: at least two private subnets must be selected")
            import_vpc.private_subnet_ids = private_subnets

        return VPCResolution(NetworkCustomization.importing(import_vpc.to_import_vpc()), warnings)

    def _verify_dns_support(self, vpc_id: str) -> None:
        if vpc_id in self._dns_verified:
            return
        if not self.ec2_client.has_dns_support(vpc_id):
            print("❌ Looks like you're creating an environment using a VPC with DNS support *disabled*.")
            print("   Services and jobs cannot be created in VPCs without DNS support.")
            print("   We recommend enabling this property.")
            raise ConfigurationError(f"VPC {vpc_id} has no DNS support enabled")
        self._dns_verified.add(vpc_id)

    def _resolve_adjust(self, adjust_vpc: AdjustVPCVars) -> VPCResolution:
        if not adjust_vpc.cidr:
            adjust_vpc.cidr = self.prompter.get(
                VPC_CIDR_PROMPT, VPC_CIDR_HELP, validate_cidr, default=self._default_vpc_cidr()
            )

        if adjust_vpc.azs is None:
            adjust_vpc.azs = self._ask_azs()

        for kind, cidrs in (("public", adjust_vpc.public_subnet_cidrs),
                            ("private", adjust_vpc.private_subnet_cidrs)):
            if cidrs is None:
                continue
            try:
                validate_subnets_cidr(len(adjust_vpc.azs), kind)(",".join(cidrs))
            except ValueError as e:
                raise ConfigurationError(f"validate {kind} subnet CIDRs: {e}") from e

        if adjust_vpc.public_subnet_cidrs is None:
            answer = self.prompter.get(
                PUBLIC_CIDR_PROMPT, PUBLIC_CIDR_HELP,
                validate_subnets_cidr(len(adjust_vpc.azs), "public"),
                default=",".join(self._default_subnet_cidrs(public=True)),
            )
            adjust_vpc.public_subnet_cidrs = parse_cidr_list(answer)

        if adjust_vpc.private_subnet_cidrs is None:
            answer = self.prompter.get(
                PRIVATE_CIDR_PROMPT, PRIVATE_CIDR_HELP,
                validate_subnets_cidr(len(adjust_vpc.azs), "private"),
                default=",".join(self._default_subnet_cidrs(public=False)),
            )
            adjust_vpc.private_subnet_cidrs = parse_cidr_list(answer)

        return VPCResolution(NetworkCustomization.adjusting(adjust_vpc.to_adjust_vpc()))

    def _ask_azs(self) -> List[str]:
        azs = [az.name for az in self.ec2_client.list_azs()]
        if len(azs) < MIN_AZS:
            raise ConfigurationError(
                f"requires at least {MIN_AZS} availability zones ({', '.join(azs)}) in region {self.region}"
            )
        return self.prompter.multi_select(
            AZ_PROMPT, AZ_HELP, azs, min_items=MIN_AZS, defaults=azs[:MIN_AZS]
        )

    def _default_vpc_cidr(self) -> str:
        if self.config is None:
            return DEFAULT_VPC_CIDR
        return self.config.get_vpc_cidr()

    def _default_subnet_cidrs(self, public: bool) -> List[str]:
        if self.config is None:
            cidrs = DEFAULT_PUBLIC_SUBNET_CIDRS if public else DEFAULT_PRIVATE_SUBNET_CIDRS
            return cidrs.split(",")
        if public:
            return self.config.get_public_subnet_cidrs()
        return self.config.get_private_subnet_cidrs()
