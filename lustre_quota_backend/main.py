"""Main application module."""

import argparse
import json
import sys
from typing import Any, Optional

from lustre_quota_backend import LUSTRE_QUOTA_BACKEND_VERSION
from lustre_quota_backend.backend import configure_logger, logger
from lustre_quota_backend.backend.exceptions import ConfigurationError, QuotaBackendError
from lustre_quota_backend.backend.structures import QuotaLimitSet, UserQuota
from lustre_quota_backend.common import utils
from lustre_quota_backend.service import QuotaService


def _quota_from_args(cli_args: argparse.Namespace) -> UserQuota:
    return UserQuota(
        user=cli_args.user.strip(),
        filesystem=cli_args.filesystem.strip(),
        limits=QuotaLimitSet(
            block_soft=cli_args.block_soft,
            block_hard=cli_args.block_hard,
            block_grace=cli_args.block_grace,
            file_soft=cli_args.file_soft,
            file_hard=cli_args.file_hard,
            file_grace=cli_args.file_grace,
        ),
    )


def _paging_query(cli_args: argparse.Namespace) -> dict[str, Any]:
    query: dict[str, Any] = {"paging": cli_args.paging, "page": cli_args.page}
    if cli_args.page_size:
        query["page_size"] = cli_args.page_size
    return query


def run_command(service: QuotaService, cli_args: argparse.Namespace) -> Any:
    """Execute the subcommand and return its JSON-serializable result."""
    command = cli_args.command
    if command == "init-db":
        service.store.create_schema()
        return "ok"
    if command == "quotas":
        paging = service.paging(_paging_query(cli_args))
        return service.list_quotas(cli_args.cluster, cli_args.users, paging).to_dict()
    if command == "applications":
        paging = service.paging(_paging_query(cli_args))
        return service.list_applications(cli_args.cluster, cli_args.applier, paging).to_dict()
    if command == "apply":
        return service.create_application(_quota_from_args(cli_args), cli_args.applier)
    if command == "update":
        service.update_application(cli_args.id, _quota_from_args(cli_args))
        return "ok"
    if command == "set-quota":
        quota = _quota_from_args(cli_args)
        if quota.user:
            return service.update_user_quota(cli_args.cluster, quota.user, quota)
        return service.update_default_quota(cli_args.cluster, quota)
    if command == "review":
        state = service.review_application(
            cli_args.cluster,
            cli_args.id,
            cli_args.approve,
            cli_args.decision,
            _quota_from_args(cli_args),
            reviewer=cli_args.reviewer,
        )
        return state.label
    if command == "decision":
        return service.get_decision(cli_args.id)
    if command == "delete":
        service.delete_application(cli_args.id)
        return "ok"
    msg = f"Unknown command: {command}"
    raise ConfigurationError(msg)


def _report_error(err: Exception) -> int:
    print(json.dumps({"detail": str(err)}), file=sys.stderr)
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Entrypoint for the application.

    Returns the exit code: 0 on success, 1 if the configuration
    or the command failed. Errors are printed to stderr as {"detail": ...}.
    """
    try:
        configuration, cli_args = utils.init_configuration(argv)
    except ConfigurationError as err:
        logger.error("Unable to load configuration: %s", err)
        return _report_error(err)

    configure_logger(configuration.log_level)
    logger.info("Lustre quota backend version: %s", LUSTRE_QUOTA_BACKEND_VERSION)

    try:
        service = utils.build_service(configuration)
        result = run_command(service, cli_args)
    except (QuotaBackendError, ConfigurationError) as err:
        logger.error("Command %s failed: %s", cli_args.command, err)
        return _report_error(err)
    print(json.dumps({"results": result}, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
