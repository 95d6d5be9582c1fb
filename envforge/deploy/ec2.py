"""Read-only EC2 lookups used to import or adjust environment networks."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set
from botocore.exceptions import ClientError

from envforge.core.aws_client import AWSClientManager


class EC2Error(Exception):
    """Raised when an EC2 lookup fails."""
    pass


@dataclass
class VPC:
    """A VPC and its Name tag."""

    id: str
    name: str = ""

    def __str__(self) -> str:
        return f"{self.id} ({self.name})" if self.name else self.id


@dataclass
class Subnet:
    """A subnet and its Name tag."""

    id: str
    name: str = ""
    cidr_block: str = ""
    availability_zone: str = ""

    def __str__(self) -> str:
        return f"{self.id} ({self.name})" if self.name else self.id


@dataclass
class AZ:
    """An availability zone available to the account."""

    id: str
    name: str


def _name_tag(tags: Optional[List[Dict[str, str]]]) -> str:
    for tag in tags or []:
        if tag.get("Key") == "Name":
            return tag.get("Value", "")
    return ""


class EC2Client:
    """Lists the network resources of the environment's account and region."""

    def __init__(self, aws_client: AWSClientManager) -> None:
        self.aws_client = aws_client
        self._ec2_client = None

    def _get_client(self):
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_client("ec2")
        return self._ec2_client

    def list_vpcs(self) -> List[VPC]:
        """List the VPCs of the region."""
        vpcs = []
        try:
            paginator = self._get_client().get_paginator("describe_vpcs")
            for page in paginator.paginate():
                for vpc in page["Vpcs"]:
                    vpcs.append(VPC(id=vpc["VpcId"], name=_name_tag(vpc.get("Tags"))))
        except ClientError as e:
            raise EC2Error(f"describe VPCs: {e}") from e
        return vpcs

    def has_dns_support(self, vpc_id: str) -> bool:
        """Whether DNS resolution is enabled on a VPC."""
        try:
            response = self._get_client().describe_vpc_attribute(
                VpcId=vpc_id, Attribute="enableDnsSupport"
            )
        except ClientError as e:
            raise EC2Error(f"describe enableDnsSupport attribute of VPC {vpc_id}: {e}") from e
        return bool(response["EnableDnsSupport"]["Value"])

    def list_subnets(self, vpc_id: str, public: bool) -> List[Subnet]:
        """List the public or the private subnets of a VPC.

        A subnet is public when the route table it uses, explicitly
        associated or the VPC's main table, routes to an internet gateway.
        """
        try:
            paginator = self._get_client().get_paginator("describe_subnets")
            pages = paginator.paginate(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])
            vpc_subnets = [subnet for page in pages for subnet in page["Subnets"]]
        except ClientError as e:
            raise EC2Error(f"describe subnets of VPC {vpc_id}: {e}") from e

        public_ids = self._public_subnet_ids(vpc_id, vpc_subnets)
        return [
            Subnet(
                id=subnet["SubnetId"],
                name=_name_tag(subnet.get("Tags")),
                cidr_block=subnet.get("CidrBlock", ""),
                availability_zone=subnet.get("AvailabilityZone", ""),
            )
            for subnet in vpc_subnets
            if (subnet["SubnetId"] in public_ids) == public
        ]

    def _public_subnet_ids(self, vpc_id: str, vpc_subnets: List[Dict[str, Any]]) -> Set[str]:
        try:
            paginator = self._get_client().get_paginator("describe_route_tables")
            pages = paginator.paginate(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])
            route_tables = [table for page in pages for table in page["RouteTables"]]
        except ClientError as e:
            raise EC2Error(f"describe route tables of VPC {vpc_id}: {e}") from e

        main_is_public = False
        explicit: Dict[str, bool] = {}
        for table in route_tables:
            is_public = any(
                route.get("GatewayId", "").startswith("igw-") for route in table.get("Routes", [])
            )
            for association in table.get("Associations", []):
                if association.get("Main"):
                    main_is_public = is_public
                elif association.get("SubnetId"):
                    explicit[association["SubnetId"]] = is_public

        return {
            subnet["SubnetId"] for subnet in vpc_subnets
            if explicit.get(subnet["SubnetId"], main_is_public)
        }

    def list_azs(self) -> List[AZ]:
        """List the availability zones the account can use in the region."""
        try:
            response = self._get_client().describe_availability_zones()
        except ClientError as e:
            raise EC2Error(f"describe availability zones: {e}") from e
        # Local and wavelength zones cannot host environment subnets.
        return [
            AZ(id=az["ZoneId"], name=az["ZoneName"])
            for az in response["AvailabilityZones"]
            if az.get("State", "available") == "available"
            and az.get("ZoneType", "availability-zone") == "availability-zone"
        ]
