"""Reconciliation of per-user Lustre quotas with filesystem defaults."""

from typing import Optional

from lustre_quota_backend.backend import logger
from lustre_quota_backend.backend.clients import IdentityClient, LustreClient
from lustre_quota_backend.backend.exceptions import UpstreamError
from lustre_quota_backend.backend.structures import (
    QuotaLimitSet,
    QuotaRecord,
    UserQuota,
    first_non_blank,
)


def merge_quota(
    user: str,
    mount: str,
    user_record: Optional[QuotaRecord],
    default_record: Optional[QuotaRecord],
) -> UserQuota:
    """Merge the user record with the default one, field by field.

    A limit of the user wins if it is set, otherwise the default limit is used.
    The filesystem name falls back to the default's and then to the mount point.
    """
    user_limits = user_record.limits if user_record else QuotaLimitSet()
    default_limits = default_record.limits if default_record else None
    return UserQuota(
        user=user,
        filesystem=first_non_blank(
            user_record.filesystem if user_record else "",
            default_record.filesystem if default_record else "",
            mount,
        ),
        limits=user_limits.resolve(default_limits),
    )


class QuotaAggregator:
    """Builds one resolved quota per (user, mount) pair."""

    def __init__(
        self, lustre_client: LustreClient, identity_client: Optional[IdentityClient] = None
    ) -> None:
        """Inits the aggregator with its data sources."""
        self.lustre_client = lustre_client
        self.identity_client = identity_client

    def _fetch_default(self, addr: str, mount: str) -> Optional[QuotaRecord]:
        try:
            return self.lustre_client.get_default_quota_record(addr, mount)
        except UpstreamError as err:
            logger.warning("Unable to fetch default quota of %s, reason: %s", mount, err)
            return None

    def _fetch_user(self, addr: str, user: str, mount: str) -> Optional[QuotaRecord]:
        try:
            return self.lustre_client.get_user_quota_record(addr, user, mount)
        except UpstreamError as err:
            logger.warning(
                "Unable to fetch quota of user %s on %s, using defaults, reason: %s",
                user,
                mount,
                err,
            )
            return None

    def reconcile(self, users: list[str], mounts: list[str], addr: str) -> list[UserQuota]:
        """Returns resolved quotas ordered by user first, then by mount.

        Default quotas are fetched once per mount before any user lookup.
        Failed lookups degrade to defaults and never drop a pair.
        """
        defaults = {mount: self._fetch_default(addr, mount) for mount in mounts}
        return [
            merge_quota(user, mount, self._fetch_user(addr, user, mount), defaults[mount])
            for user in users
            for mount in mounts
        ]

    def resolve_one(self, addr: str, user: str, mount: str) -> UserQuota:
        """Returns the resolved quota of a single user on a single mount."""
        default_record = self._fetch_default(addr, mount)
        return merge_quota(user, mount, self._fetch_user(addr, user, mount), default_record)

    def resolve_users(self, identity_addr: str) -> list[str]:
        """Returns all users of the cluster from the identity service."""
        if self.identity_client is None:
            msg = "identity service is not configured"
            raise UpstreamError(msg)
        users = self.identity_client.list_users(identity_addr)
        logger.debug("Resolved %s users from identity service", len(users))
        return users

    def collect(
        self,
        addr: str,
        users: Optional[list[str]] = None,
        identity_addr: Optional[str] = None,
    ) -> list[UserQuota]:
        """Lists mounts and reconciles quotas of the given or all users.

        Failure to list users or mounts aborts the call.
        """
        users = [user.strip() for user in users or [] if user.strip()]
        if not users:
            users = self.resolve_users(identity_addr or "")
        mounts = self.lustre_client.list_mounts(addr)
        logger.info("Reconciling quotas of %s users on %s mounts", len(users), len(mounts))
        return self.reconcile(users, mounts, addr)
