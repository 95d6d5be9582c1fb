#!/usr/bin/env python3
"""envforge - Main Entry Point.

Provisions deployment environments for containerized workloads.
"""

import argparse
import logging
import sys
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from envforge import __version__
from envforge.core.aws_client import AWSClientManager
from envforge.core.config import Configuration, ConfigurationError
from envforge.core.interactive import PromptError
from envforge.deploy.ec2 import EC2Error
from envforge.environment.credentials import TempCredsVars
from envforge.environment.init import InitEnvironmentCommand, InitEnvVars
from envforge.environment.orchestrator import EnvironmentInitError
from envforge.environment.vpc import AdjustVPCVars, ImportVPCVars
from envforge.store.ssm_store import StoreError


logger = logging.getLogger(__name__)


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated flag value; None when the flag was not given."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Returns:
        Parser with the ``env init`` command
    """
    parser = argparse.ArgumentParser(
        prog="envforge",
        description="Provision deployment environments for containerized workloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"envforge v{__version__}"
    )
    parser.add_argument(
        "--config", help="Path to configuration file (default: auto-detect envforge.yaml)"
    )

    commands = parser.add_subparsers(dest="command")
    env = commands.add_parser("env", help="Commands for environments")
    env_commands = env.add_subparsers(dest="env_command")

    init = env_commands.add_parser(
        "init",
        help="Creates a new environment in your application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Creates a test environment in your "default" AWS profile using default configuration.
  %(prog)s --name test --profile default --default-config

  Creates a prod-iad environment using your "prod-admin" AWS profile.
  %(prog)s --name prod-iad --profile prod-admin --prod

  Creates an environment with imported VPC resources.
  %(prog)s --import-vpc-id vpc-099c32d2b98cdcf47 \\
    --import-public-subnets subnet-013e8b691862966cf,subnet-014661ebb7ab8681a \\
    --import-private-subnets subnet-055fafef48fb3c547,subnet-00c9e76f288363e7f

  Creates an environment with overridden CIDRs and AZs.
  %(prog)s --override-vpc-cidr 10.1.0.0/16 \\
    --override-az-names us-west-2b,us-west-2c \\
    --override-public-cidrs 10.1.0.0/24,10.1.1.0/24 \\
    --override-private-cidrs 10.1.2.0/24,10.1.3.0/24
        """,
    )
    init.add_argument("-a", "--app", default="", help="Name of the application")
    init.add_argument("-n", "--name", default="", help="Name of the environment")
    init.add_argument("--profile", default="", help="Name of the profile for the environment account")
    init.add_argument("--aws-access-key-id", default="", help="Optional. An AWS access key")
    init.add_argument("--aws-secret-access-key", default="", help="Optional. An AWS secret access key")
    init.add_argument("--aws-session-token", default="",
                      help="Optional. An AWS session token for temporary credentials")
    init.add_argument("--region", default="", help="Optional. An AWS region where the environment will be created")
    init.add_argument("--prod", action="store_true",
                      help="If the environment contains production services")
    init.add_argument("--default-config", action="store_true",
                      help="Skip prompting and use default environment configuration")

    init.add_argument("--import-vpc-id", default="", help="ID of the VPC")
    init.add_argument("--import-public-subnets", help="Public subnet IDs, comma separated")
    init.add_argument("--import-private-subnets", help="Private subnet IDs, comma separated")

    init.add_argument("--override-vpc-cidr", default="", help="Global CIDR to use for VPC (default 10.0.0.0/16)")
    init.add_argument("--override-az-names", help="Availability Zone names, comma separated")
    init.add_argument("--override-public-cidrs", help="CIDR to use for public subnets, comma separated")
    init.add_argument("--override-private-cidrs", help="CIDR to use for private subnets, comma separated")
    return parser


def vars_from_args(args: argparse.Namespace) -> InitEnvVars:
    """Convert parsed ``env init`` arguments to command variables."""
    return InitEnvVars(
        app_name=args.app,
        name=args.name,
        profile=args.profile,
        prod=args.prod,
        default_config=args.default_config,
        import_vpc=ImportVPCVars(
            id=args.import_vpc_id,
            public_subnet_ids=_split_list(args.import_public_subnets),
            private_subnet_ids=_split_list(args.import_private_subnets),
        ),
        adjust_vpc=AdjustVPCVars(
            cidr=args.override_vpc_cidr,
            azs=_split_list(args.override_az_names),
            public_subnet_cidrs=_split_list(args.override_public_cidrs),
            private_subnet_cidrs=_split_list(args.override_private_cidrs),
        ),
        temp_creds=TempCredsVars(
            access_key_id=args.aws_access_key_id,
            secret_access_key=args.aws_secret_access_key,
            session_token=args.aws_session_token,
        ),
        region=args.region,
    )


def configure_logging(config: Configuration) -> None:
    logging.basicConfig(
        level=config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "env" or args.env_command != "init":
        parser.print_help()
        return 2

    try:
        config = Configuration(args.config)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return 1
    configure_logging(config)

    try:
        # The default credentials hold the application and its records.
        try:
            app_session = AWSClientManager(
                profile_name=config.get_profile_name(), region_name=config.get_region()
            )
        except (NoCredentialsError, ProfileNotFound, ClientError) as e:
            print(f"❌ AWS client initialization failed: {e}")
            return 1

        command = InitEnvironmentCommand(vars_from_args(args), config, app_session)
        command.run()
        return 0

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return 130

    except (ConfigurationError, PromptError) as e:
        print(f"❌ {e}")
        return 1

    except (EnvironmentInitError, StoreError, EC2Error) as e:
        print(f"❌ Failed to create environment: {e}")
        return 1

    except (ClientError, BotoCoreError) as e:
        logger.debug("AWS error", exc_info=True)
        print(f"❌ AWS error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
