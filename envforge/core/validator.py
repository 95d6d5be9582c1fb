"""Validation of user supplied environment options.

Validators raise ValueError with a message fit for display; the prompter
re-asks on ValueError and the command layer turns it into a
ConfigurationError.
"""

import ipaddress
import re
from typing import Callable, List


ENVIRONMENT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
MAX_ENVIRONMENT_NAME_LENGTH = 255
RESERVED_ENVIRONMENT_NAMES = ("pipelines",)


def validate_environment_name(name: str) -> None:
    """Validate an environment name.

    Names start with a lowercase letter and contain only lowercase
    letters, numbers and hyphens.

    Raises:
        ValueError: When the name is invalid
    """
    if not name:
        raise ValueError("environment name cannot be empty")
    if len(name) > MAX_ENVIRONMENT_NAME_LENGTH:
        raise ValueError(
            f"environment name must contain at most {MAX_ENVIRONMENT_NAME_LENGTH} characters"
        )
    if not ENVIRONMENT_NAME_PATTERN.match(name):
        raise ValueError(
            "environment name must start with a letter and contain only "
            "lowercase letters, numbers, and hyphens"
        )
    if "--" in name or name.endswith("-"):
        raise ValueError("environment name cannot contain consecutive or trailing hyphens")
    if name in RESERVED_ENVIRONMENT_NAMES:
        raise ValueError(f"environment name {name} is reserved")


def validate_cidr(value: str) -> None:
    """Validate a single IPv4 CIDR block.

    Raises:
        ValueError: When the value is not a CIDR block
    """
    try:
        network = ipaddress.ip_network(value.strip(), strict=False)
    except ValueError:
        raise ValueError(f"{value} is not a valid CIDR block (e.g. 10.0.0.0/16)")
    if network.version != 4 or "/" not in value:
        raise ValueError(f"{value} is not a valid IPv4 CIDR block (e.g. 10.0.0.0/16)")


def parse_cidr_list(value: str) -> List[str]:
    """Split a comma-separated CIDR list, dropping blanks."""
    return [part.strip() for part in value.split(",") if part.strip()]


def validate_subnets_cidr(az_count: int, kind: str = "") -> Callable[[str], None]:
    """Build a validator for a comma-separated list of subnet CIDRs.

    One subnet is placed per availability zone, so the list must have
    exactly ``az_count`` entries.

    Args:
        az_count: Number of availability zones selected
        kind: Optional subnet kind used in messages ("public", "private")
    """
    label = f"{kind} subnet CIDRs" if kind else "subnet CIDRs"

    def _validate(value: str) -> None:
        cidrs = parse_cidr_list(value)
        for cidr in cidrs:
            validate_cidr(cidr)
        if len(cidrs) != az_count:
            raise ValueError(
                f"number of {label} ({len(cidrs)}) does not match number of AZs ({az_count})"
            )

    return _validate
