"""Configuration management for envforge.

This module handles YAML configuration loading, validation, built-in
defaults for new environments and environment variable override support.
"""

import copy
import ipaddress
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


DEFAULT_REGION = "us-west-2"
DEFAULT_VPC_CIDR = "10.0.0.0/16"
DEFAULT_PUBLIC_SUBNET_CIDRS = "10.0.0.0/24,10.0.1.0/24"
DEFAULT_PRIVATE_SUBNET_CIDRS = "10.0.2.0/24,10.0.3.0/24"
DEFAULT_PARAMETER_PREFIX = "/envforge"

DEFAULTS: Dict[str, Any] = {
    "aws": {},
    "environment": {
        "default_region": DEFAULT_REGION,
        "vpc_cidr": DEFAULT_VPC_CIDR,
        "public_subnet_cidrs": DEFAULT_PUBLIC_SUBNET_CIDRS,
        "private_subnet_cidrs": DEFAULT_PRIVATE_SUBNET_CIDRS,
    },
    "store": {
        "parameter_prefix": DEFAULT_PARAMETER_PREFIX,
    },
    "logging": {
        "level": "WARNING",
    },
}


class ConfigurationError(Exception):
    """Raised when configuration or user supplied options are invalid."""

    pass


class Configuration:
    """Configuration management with YAML loading and validation.

    Values come from the built-in defaults, overlaid by an optional YAML
    file, overlaid by environment variables.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects envforge.yaml in current directory.

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._config_path = self._resolve_config_path(config_path)
        if self._config_path is not None:
            self._load_configuration()
        self._apply_environment_overrides()
        self._validate_configuration()

    @property
    def config_path(self) -> Optional[Path]:
        """Get the path of the loaded configuration file, if any."""
        return self._config_path

    def _resolve_config_path(self, config_path: Optional[str]) -> Optional[Path]:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object, or None when no file was found by auto-detection

        Raises:
            ConfigurationError: When an explicitly given file is not found
        """
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {path}. "
                    "Please create a configuration file or specify a valid path."
                )
            return path

        # Auto-detect envforge.yaml in current directory
        for candidate in (Path("envforge.yaml"), Path("config/envforge.yaml")):
            if candidate.exists():
                return candidate
        return None

    def _load_configuration(self) -> None:
        """Load configuration from YAML file and merge it over the defaults.

        Raises:
            ConfigurationError: When YAML file is invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )
        self._merge(self._config, loaded)

    def _merge(self, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge(target[key], value)
            else:
                target[key] = value

    def _validate_configuration(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: When a value is malformed
        """
        vpc_cidr = self.get("environment.vpc_cidr")
        try:
            ipaddress.ip_network(vpc_cidr)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Field 'environment.vpc_cidr' is not a valid CIDR: {vpc_cidr}"
            )

        for key in ("environment.public_subnet_cidrs", "environment.private_subnet_cidrs"):
            value = self.get(key)
            if isinstance(value, list):
                value = ",".join(value)
                self._set_nested_value(key, value)
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"Field '{key}' must be a non-empty string")
            for cidr in value.split(","):
                try:
                    ipaddress.ip_network(cidr.strip())
                except ValueError:
                    raise ConfigurationError(f"Field '{key}' contains an invalid CIDR: {cidr}")

        region = self.get("environment.default_region")
        if not isinstance(region, str) or not region:
            raise ConfigurationError("Field 'environment.default_region' must be a non-empty string")

        level = str(self.get("logging.level", "WARNING")).upper()
        if level not in logging.getLevelNamesMapping():
            raise ConfigurationError(f"Field 'logging.level' is not a valid level: {level}")
        self._set_nested_value("logging.level", level)

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        # AWS region override
        if "AWS_REGION" in os.environ:
            self._set_nested_value("aws.region", os.environ["AWS_REGION"])

        # AWS profile override
        if "AWS_PROFILE" in os.environ:
            self._set_nested_value(
                "aws.profile_name", os.environ["AWS_PROFILE"]
            )

        if "ENVFORGE_LOG_LEVEL" in os.environ:
            self._set_nested_value("logging.level", os.environ["ENVFORGE_LOG_LEVEL"])

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.region')
            value: Value to set
        """
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'environment.vpc_cidr')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_region(self) -> Optional[str]:
        """Get the explicitly configured AWS region, if any."""
        return self.get("aws.region")

    def get_profile_name(self) -> Optional[str]:
        """Get the explicitly configured AWS profile, if any."""
        return self.get("aws.profile_name")

    def get_default_region(self) -> str:
        """Get the region offered when nothing else decides one."""
        return self.get("environment.default_region", DEFAULT_REGION)

    def get_vpc_cidr(self) -> str:
        """Get the default CIDR for generated VPCs."""
        return self.get("environment.vpc_cidr", DEFAULT_VPC_CIDR)

    def get_public_subnet_cidrs(self) -> List[str]:
        """Get the default CIDRs for generated public subnets."""
        return self.get("environment.public_subnet_cidrs", DEFAULT_PUBLIC_SUBNET_CIDRS).split(",")

    def get_private_subnet_cidrs(self) -> List[str]:
        """Get the default CIDRs for generated private subnets."""
        return self.get("environment.private_subnet_cidrs", DEFAULT_PRIVATE_SUBNET_CIDRS).split(",")

    def get_parameter_prefix(self) -> str:
        """Get the SSM parameter path prefix for stored records."""
        return self.get("store.parameter_prefix", DEFAULT_PARAMETER_PREFIX).rstrip("/")

    def get_log_level(self) -> str:
        """Get the logging level name."""
        return self.get("logging.level", "WARNING")

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return copy.deepcopy(self._config)
