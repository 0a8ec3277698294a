"""Shared utility functions of the quota backend.

This module provides:
- Configuration loading from YAML files
- Command line parsing
- Construction of the quota service from the configuration
"""

import argparse
from pathlib import Path
from typing import Optional

import requests
import yaml
from pydantic import ValidationError

from lustre_quota_backend.backend import logger
from lustre_quota_backend.backend.clients import IdentityClient, LustreClient
from lustre_quota_backend.backend.exceptions import ConfigurationError
from lustre_quota_backend.backend.store import ApplicationStore
from lustre_quota_backend.common import LUSTRE_QUOTA_BACKEND_CONFIG, LUSTRE_QUOTA_BACKEND_LOG_LEVEL
from lustre_quota_backend.common.structures import ServiceConfiguration
from lustre_quota_backend.service import QuotaService


def load_configuration(config_file_path: str) -> ServiceConfiguration:
    """Load configuration from YAML file.

    Args:
        config_file_path: Path to the YAML configuration file

    Returns:
        Validated service configuration

    Raises:
        ConfigurationError: If the file cannot be read or parsed,
            or the configuration values are invalid
    """
    try:
        with Path(config_file_path).open(encoding="UTF-8") as stream:
            config = yaml.safe_load(stream) or {}
    except OSError as e:
        msg = f"Unable to read configuration file {config_file_path}: {e}"
        raise ConfigurationError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Malformed configuration file {config_file_path}: {e}"
        raise ConfigurationError(msg) from e
    if not isinstance(config, dict):
        msg = f"Configuration file {config_file_path} must contain a mapping"
        raise ConfigurationError(msg)

    try:
        configuration = ServiceConfiguration(**config)
    except ValidationError as e:
        msg = f"Invalid configuration in {config_file_path}: {e}"
        raise ConfigurationError(msg) from e

    if LUSTRE_QUOTA_BACKEND_LOG_LEVEL:
        configuration.log_level = LUSTRE_QUOTA_BACKEND_LOG_LEVEL.upper()

    # Initialize Sentry if DSN is provided
    if configuration.sentry_dsn:
        import sentry_sdk  # noqa: PLC0415

        sentry_sdk.init(dsn=configuration.sentry_dsn)

    configuration.config_file_path = config_file_path
    return configuration


def build_parser() -> argparse.ArgumentParser:
    """Returns the parser of command line arguments."""
    parser = argparse.ArgumentParser(
        prog="lustre-quota-backend",
        description="Lustre quota reconciliation and application review.",
    )
    parser.add_argument(
        "--config-file",
        "-c",
        help="Path to the config file with cluster settings; "
        f"default is {LUSTRE_QUOTA_BACKEND_CONFIG}",
        dest="config_file_path",
        default=LUSTRE_QUOTA_BACKEND_CONFIG,
        required=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the applications table")

    quotas = subparsers.add_parser("quotas", help="List resolved quotas")
    quotas.add_argument("--cluster", required=True)
    quotas.add_argument("--user", action="append", default=[], dest="users")
    _add_paging_arguments(quotas)

    applications = subparsers.add_parser("applications", help="List quota applications")
    applications.add_argument("--cluster", required=True)
    applications.add_argument("--applier", default="")
    _add_paging_arguments(applications)

    apply = subparsers.add_parser("apply", help="Submit a quota application")
    _add_quota_arguments(apply)
    apply.add_argument("--applier", default="")

    update = subparsers.add_parser("update", help="Change the requested quota of an application")
    update.add_argument("id", type=int)
    _add_quota_arguments(update)

    set_quota = subparsers.add_parser(
        "set-quota", help="Set a user quota, or the default quota if no user is given"
    )
    set_quota.add_argument("--cluster", required=True)
    set_quota.add_argument("--user", default="")
    set_quota.add_argument("--filesystem", required=True)
    _add_limit_arguments(set_quota)

    review = subparsers.add_parser("review", help="Review a quota application")
    review.add_argument("id", type=int)
    review.add_argument("--cluster", required=True)
    decision_group = review.add_mutually_exclusive_group(required=True)
    decision_group.add_argument("--approve", action="store_true", dest="approve")
    decision_group.add_argument("--reject", action="store_false", dest="approve")
    review.add_argument("--decision", default="")
    review.add_argument("--reviewer", default="")
    _add_quota_arguments(review, required=False)

    decision = subparsers.add_parser("decision", help="Show the review decision")
    decision.add_argument("id", type=int)

    delete = subparsers.add_parser("delete", help="Delete a quota application")
    delete.add_argument("id", type=int)

    return parser


def _add_paging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--no-paging", action="store_false", dest="paging")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--page-size", type=int, default=0)


def _add_quota_arguments(parser: argparse.ArgumentParser, required: bool = True) -> None:
    parser.add_argument("--user", default="", required=required)
    parser.add_argument("--filesystem", default="", required=required)
    _add_limit_arguments(parser)


def _add_limit_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--block-soft", default="")
    parser.add_argument("--block-hard", default="")
    parser.add_argument("--block-grace", default="")
    parser.add_argument("--file-soft", default="")
    parser.add_argument("--file-hard", default="")
    parser.add_argument("--file-grace", default="")


def init_configuration(
    argv: Optional[list[str]] = None,
) -> tuple[ServiceConfiguration, argparse.Namespace]:
    """Parse command line arguments and load the configuration file.

    Returns:
        The service configuration and the parsed arguments
    """
    cli_args = build_parser().parse_args(argv)
    logger.info("Using %s as a config source", cli_args.config_file_path)
    configuration = load_configuration(cli_args.config_file_path)
    return configuration, cli_args


def build_service(
    configuration: ServiceConfiguration, store: Optional[ApplicationStore] = None
) -> QuotaService:
    """Create the quota service and its collaborators from the configuration."""
    lustre_client = LustreClient(
        scheme=configuration.lustre.scheme,
        timeout=configuration.lustre.timeout,
        session=requests.Session(),
    )
    identity_client = IdentityClient(
        scheme=configuration.identity.scheme,
        timeout=configuration.identity.timeout,
        session=requests.Session(),
    )
    if store is None:
        store = ApplicationStore(configuration.database_url)
    return QuotaService(configuration, lustre_client, identity_client, store)
