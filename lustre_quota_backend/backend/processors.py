"""Review processing of quota applications."""

from typing import Optional

from lustre_quota_backend.backend import commands, logger
from lustre_quota_backend.backend.clients import LustreClient
from lustre_quota_backend.backend.exceptions import ValidationError
from lustre_quota_backend.backend.store import ApplicationStore
from lustre_quota_backend.backend.structures import ApplicationState, UserQuota


class ReviewProcessor:
    """Applies reviewer decisions to quota applications.

    On approval the requested quota is applied on the Lustre servers first,
    the application is updated only after every command succeeded.
    A rejection never executes any command.
    """

    def __init__(self, store: ApplicationStore, lustre_client: LustreClient) -> None:
        """Inits the processor with the store and the command executor."""
        self.store = store
        self.lustre_client = lustre_client

    def apply_quota(self, addr: str, quota: UserQuota) -> list[str]:
        """Execute the commands setting the quota, returns the executed commands.

        Nothing is executed if the quota sets no limit.
        """
        quota_commands = commands.build_setquota_commands(
            quota.limits, quota.filesystem, quota.user or None
        )
        if not quota_commands:
            logger.info(
                "No quota limits to update for user %s on %s", quota.user, quota.filesystem
            )
            return []
        for command in quota_commands:
            self.lustre_client.run(addr, command)
        return quota_commands

    def review_application(
        self,
        application_id: int,
        approve: bool,
        decision: str,
        requested: UserQuota,
        addr: Optional[str] = None,
        reviewer: Optional[str] = None,
    ) -> ApplicationState:
        """Review the application and return its new state.

        Any failure leaves the application untouched in REVIEWING state.
        """
        if approve:
            if not requested.user.strip() or not requested.filesystem.strip():
                msg = "user and filesystem are required when approve=true"
                raise ValidationError(msg)
            if not addr:
                msg = "lustre server address is required when approve=true"
                raise ValidationError(msg)

        application = self.store.get(application_id)
        if application.state != ApplicationState.REVIEWING:
            msg = (
                f"application {application_id} is not awaiting review, "
                f"state: {application.state.label}"
            )
            raise ValidationError(msg)

        if approve:
            executed = self.apply_quota(addr or "", requested)
            logger.info(
                "Quota of application %s has been applied with %s command(s)",
                application_id,
                len(executed),
            )
            state = ApplicationState.PASSED
        else:
            logger.info("Application %s has been rejected, no command executed", application_id)
            state = ApplicationState.REJECTED

        content = requested
        if not approve and not requested.user and not requested.filesystem:
            content = application.content

        self.store.review(
            application_id,
            state,
            decision,
            content,
            reviewer=reviewer,
            expected_version=application.version,
        )
        return state
