"""Tests for environment network resolution."""

import pytest
from unittest.mock import Mock

from envforge.core.config import Configuration, ConfigurationError
from envforge.core.interactive import Prompter
from envforge.deploy.ec2 import AZ, EC2Client
from envforge.environment.selector import EC2Selector, SubnetsNotFoundError, VPCNotFoundError
from envforge.environment.vpc import (
    ADJUST_RESOURCES_OPTION,
    DEFAULT_CONFIG_OPTION,
    IMPORT_RESOURCES_OPTION,
    AdjustVPCVars,
    ImportVPCVars,
    VPCResolver,
    validate_customized_resources,
)
from envforge.store.models import AdjustVPC, ImportVPC, NetworkMode


@pytest.fixture
def prompter():
    """Mock prompter."""
    return Mock(spec=Prompter)


@pytest.fixture
def ec2_client():
    """Mock EC2 client with DNS support enabled."""
    client = Mock(spec=EC2Client)
    client.has_dns_support.return_value = True
    client.list_azs.return_value = [
        AZ(id="usw2-az1", name="us-west-2a"),
        AZ(id="usw2-az2", name="us-west-2b"),
        AZ(id="usw2-az3", name="us-west-2c"),
    ]
    return client


@pytest.fixture
def selector():
    """Mock EC2 selector."""
    return Mock(spec=EC2Selector)


@pytest.fixture
def resolver(prompter, ec2_client, selector):
    """Resolver over mocked collaborators."""
    return VPCResolver(prompter, ec2_client, selector=selector, region="us-west-2")


class TestValidateCustomizedResources:
    """Test cases for flag validation."""

    def test_no_flags(self):
        """Test nothing set is valid."""
        validate_customized_resources(ImportVPCVars(), AdjustVPCVars())

    def test_import_and_adjust(self):
        """Test importing and adjusting are mutually exclusive."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(ImportVPCVars(id="vpc-1"), AdjustVPCVars(cidr="10.1.0.0/16"))

        assert "cannot specify both import vpc flags and configure vpc flags" in str(exc_info.value)

    @pytest.mark.parametrize("import_vpc,adjust_vpc", [
        (ImportVPCVars(id="vpc-1"), AdjustVPCVars()),
        (ImportVPCVars(), AdjustVPCVars(azs=["us-west-2a", "us-west-2b"])),
    ])
    def test_default_config_with_customization(self, import_vpc, adjust_vpc):
        """Test the default config cannot be combined with customization."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(import_vpc, adjust_vpc, default_config=True)

        assert "--default-config" in str(exc_info.value)

    def test_single_public_subnet(self):
        """Test importing one public subnet."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(ImportVPCVars(id="vpc-1", public_subnet_ids=["subnet-1"]), AdjustVPCVars())

        assert "at least two public subnets" in str(exc_info.value)

    def test_single_private_subnet(self):
        """Test importing one private subnet."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(ImportVPCVars(id="vpc-1", private_subnet_ids=["subnet-1"]), AdjustVPCVars())

        assert "at least two private subnets" in str(exc_info.value)

    def test_import_without_subnets(self):
        """Test a VPC can be imported without naming subnets."""
        validate_customized_resources(ImportVPCVars(id="vpc-1", public_subnet_ids=[]), AdjustVPCVars())

    def test_single_az(self):
        """Test one availability zone."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(ImportVPCVars(), AdjustVPCVars(azs=["us-west-2a"]))

        assert "at least two availability zones" in str(exc_info.value)

    def test_invalid_cidr(self):
        """Test a malformed VPC CIDR."""
        with pytest.raises(ConfigurationError):
            validate_customized_resources(ImportVPCVars(), AdjustVPCVars(cidr="10.1.0.0"))

    def test_subnet_count_mismatch(self):
        """Test subnet CIDRs must match the number of AZs."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_customized_resources(ImportVPCVars(), AdjustVPCVars(
                azs=["us-west-2a", "us-west-2b"], public_subnet_cidrs=["10.1.0.0/24"]
            ))

        assert "does not match number of AZs" in str(exc_info.value)


class TestVPCResolverDefault:
    """Test cases for the default network."""

    def test_default_config_flag(self, resolver, prompter):
        """Test the flag skips the prompt."""
        resolution = resolver.resolve(ImportVPCVars(), AdjustVPCVars(), default_config=True)

        assert resolution.network.mode is NetworkMode.DEFAULT
        assert resolution.network.to_customize_env() is None
        prompter.select_one.assert_not_called()

    def test_default_selected(self, resolver, prompter, ec2_client):
        """Test choosing the default at the prompt."""
        prompter.select_one.return_value = DEFAULT_CONFIG_OPTION

        resolution = resolver.resolve(ImportVPCVars(), AdjustVPCVars())

        assert resolution.network.mode is NetworkMode.DEFAULT
        ec2_client.list_vpcs.assert_not_called()


class TestVPCResolverImport:
    """Test cases for importing an existing VPC."""

    def test_all_flags(self, resolver, prompter, selector, ec2_client):
        """Test fully specified flags make no prompt."""
        import_vpc = ImportVPCVars(id="vpc-1", public_subnet_ids=["s-1", "s-2"], private_subnet_ids=["s-3", "s-4"])

        resolution = resolver.resolve(import_vpc, AdjustVPCVars())

        assert resolution.network.import_vpc == ImportVPC(
            id="vpc-1", public_subnet_ids=["s-1", "s-2"], private_subnet_ids=["s-3", "s-4"]
        )
        ec2_client.has_dns_support.assert_called_once_with("vpc-1")
        selector.subnets.assert_not_called()
        prompter.select_one.assert_not_called()

    def test_interactive(self, resolver, prompter, selector):
        """Test selecting the VPC and subnets interactively."""
        prompter.select_one.return_value = IMPORT_RESOURCES_OPTION
        selector.vpc.return_value = "vpc-1"
        selector.subnets.side_effect = [["s-1", "s-2"], ["s-3", "s-4"]]

        resolution = resolver.resolve(ImportVPCVars(), AdjustVPCVars())

        assert resolution.network.mode is NetworkMode.IMPORT
        assert resolution.network.import_vpc.private_subnet_ids == ["s-3", "s-4"]
        assert selector.subnets.call_args_list[0].kwargs["public"] is True
        assert selector.subnets.call_args_list[1].kwargs["public"] is False

    def test_no_vpcs(self, resolver, prompter, selector):
        """Test importing when the region has no VPC."""
        prompter.select_one.return_value = IMPORT_RESOURCES_OPTION
        selector.vpc.side_effect = VPCNotFoundError()

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(), AdjustVPCVars())

        assert "select VPC" in str(exc_info.value)

    def test_dns_support_disabled(self, resolver, ec2_client, selector):
        """Test a VPC without DNS support is rejected."""
        ec2_client.has_dns_support.return_value = False

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(id="vpc-1"), AdjustVPCVars())

        assert "no DNS support" in str(exc_info.value)
        selector.subnets.assert_not_called()

    def test_no_public_subnets_warns(self, resolver, selector):
        """Test missing public subnets only produce a warning."""
        selector.subnets.side_effect = [SubnetsNotFoundError("vpc-1", True), ["s-3", "s-4"]]

        resolution = resolver.resolve(ImportVPCVars(id="vpc-1"), AdjustVPCVars())

        assert resolution.network.import_vpc.public_subnet_ids == []
        assert len(resolution.warnings) == 1
        assert "Load Balanced Web Services" in resolution.warnings[0]

    def test_one_public_subnet_selected(self, resolver, selector):
        """Test selecting a single public subnet."""
        selector.subnets.return_value = ["s-1"]

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(id="vpc-1"), AdjustVPCVars())

        assert "at least two public subnets" in str(exc_info.value)

    def test_no_private_subnets(self, resolver, selector):
        """Test missing private subnets are an error."""
        selector.subnets.side_effect = [["s-1", "s-2"], SubnetsNotFoundError("vpc-1", False)]

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(id="vpc-1"), AdjustVPCVars())

        assert "select private subnets" in str(exc_info.value)

    def test_one_private_subnet_selected(self, resolver, selector):
        """Test selecting fewer than two private subnets."""
        selector.subnets.side_effect = [["s-1", "s-2"], ["s-3"]]

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(id="vpc-1"), AdjustVPCVars())

        assert "at least two private subnets" in str(exc_info.value)

    def test_resolving_again_is_idempotent(self, resolver, selector, ec2_client):
        """Test resolved flags are not asked for or verified twice."""
        selector.subnets.side_effect = [["s-1", "s-2"], ["s-3", "s-4"]]
        import_vpc = ImportVPCVars(id="vpc-1")

        first = resolver.resolve(import_vpc, AdjustVPCVars())
        second = resolver.resolve(import_vpc, AdjustVPCVars())

        assert first.network == second.network
        assert selector.subnets.call_count == 2
        ec2_client.has_dns_support.assert_called_once_with("vpc-1")


class TestVPCResolverAdjust:
    """Test cases for adjusting the generated VPC."""

    def test_all_flags(self, resolver, prompter, ec2_client):
        """Test fully specified flags make no prompt."""
        adjust_vpc = AdjustVPCVars(
            cidr="10.1.0.0/16",
            azs=["us-west-2a", "us-west-2b"],
            public_subnet_cidrs=["10.1.0.0/24", "10.1.1.0/24"],
            private_subnet_cidrs=["10.1.2.0/24", "10.1.3.0/24"],
        )

        resolution = resolver.resolve(ImportVPCVars(), adjust_vpc)

        assert resolution.network.adjust_vpc == AdjustVPC(
            cidr="10.1.0.0/16",
            azs=["us-west-2a", "us-west-2b"],
            public_subnet_cidrs=["10.1.0.0/24", "10.1.1.0/24"],
            private_subnet_cidrs=["10.1.2.0/24", "10.1.3.0/24"],
        )
        prompter.get.assert_not_called()
        ec2_client.list_azs.assert_not_called()

    def test_interactive(self, resolver, prompter):
        """Test prompting for every missing value."""
        prompter.select_one.return_value = ADJUST_RESOURCES_OPTION
        prompter.get.side_effect = ["10.1.0.0/16", "10.1.0.0/24,10.1.1.0/24", "10.1.2.0/24, 10.1.3.0/24"]
        prompter.multi_select.return_value = ["us-west-2a", "us-west-2c"]

        resolution = resolver.resolve(ImportVPCVars(), AdjustVPCVars())

        adjust_vpc = resolution.network.adjust_vpc
        assert adjust_vpc.azs == ["us-west-2a", "us-west-2c"]
        assert adjust_vpc.private_subnet_cidrs == ["10.1.2.0/24", "10.1.3.0/24"]
        az_call = prompter.multi_select.call_args
        assert az_call.kwargs["min_items"] == 2
        assert az_call.kwargs["defaults"] == ["us-west-2a", "us-west-2b"]

    def test_subnet_flags_checked_against_prompted_azs(self, resolver, prompter):
        """Test subnet CIDR flags must match the number of prompted AZs."""
        prompter.multi_select.return_value = ["us-west-2a", "us-west-2b"]
        adjust_vpc = AdjustVPCVars(
            cidr="10.0.0.0/16",
            public_subnet_cidrs=["10.0.0.0/24", "10.0.1.0/24", "10.0.4.0/24"],
        )

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(), adjust_vpc)

        assert "number of public subnet CIDRs (3) does not match number of AZs (2)" in str(exc_info.value)
        prompter.get.assert_not_called()

    def test_private_subnet_flags_checked_against_prompted_azs(self, resolver, prompter):
        """Test private subnet CIDR flags must match the number of prompted AZs."""
        prompter.multi_select.return_value = ["us-west-2a", "us-west-2b", "us-west-2c"]
        adjust_vpc = AdjustVPCVars(
            cidr="10.0.0.0/16",
            private_subnet_cidrs=["10.0.2.0/24", "10.0.3.0/24"],
        )

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(), adjust_vpc)

        assert "private subnet CIDRs (2)" in str(exc_info.value)

    def test_default_answers_from_configuration(self, prompter, ec2_client, selector):
        """Test prompt defaults come from the configuration."""
        config = Mock(spec=Configuration)
        config.get_vpc_cidr.return_value = "10.9.0.0/16"
        config.get_public_subnet_cidrs.return_value = ["10.9.0.0/24", "10.9.1.0/24"]
        config.get_private_subnet_cidrs.return_value = ["10.9.2.0/24", "10.9.3.0/24"]
        prompter.get.side_effect = lambda message, help_text, validator, default: default
        resolver = VPCResolver(prompter, ec2_client, selector=selector, config=config)

        resolution = resolver.resolve(ImportVPCVars(), AdjustVPCVars(azs=["us-west-2a", "us-west-2b"]))

        assert resolution.network.adjust_vpc == AdjustVPC(
            cidr="10.9.0.0/16",
            azs=["us-west-2a", "us-west-2b"],
            public_subnet_cidrs=["10.9.0.0/24", "10.9.1.0/24"],
            private_subnet_cidrs=["10.9.2.0/24", "10.9.3.0/24"],
        )

    def test_not_enough_azs(self, resolver, prompter, ec2_client):
        """Test a region with a single availability zone."""
        ec2_client.list_azs.return_value = [AZ(id="usw2-az1", name="us-west-2a")]

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(ImportVPCVars(), AdjustVPCVars(cidr="10.1.0.0/16"))

        assert "requires at least 2 availability zones" in str(exc_info.value)
        prompter.multi_select.assert_not_called()
