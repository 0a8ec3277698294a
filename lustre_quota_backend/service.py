"""Operations of the Lustre quota API, independent of the web layer."""

from typing import Optional

from lustre_quota_backend.backend import commands, logger, request_context
from lustre_quota_backend.backend.aggregator import QuotaAggregator
from lustre_quota_backend.backend.clients import IdentityClient, LustreClient
from lustre_quota_backend.backend.exceptions import ValidationError
from lustre_quota_backend.backend.processors import ReviewProcessor
from lustre_quota_backend.backend.store import ApplicationStore
from lustre_quota_backend.backend.structures import (
    ApplicationClass,
    ApplicationState,
    QuotaApplicationView,
    UserQuota,
)
from lustre_quota_backend.common.pagination import PageResponse, PagingParams, paginate
from lustre_quota_backend.common.structures import ClusterResolver, ServiceConfiguration


class QuotaService:
    """Quota listing, quota updates and the application workflow of a cluster."""

    def __init__(
        self,
        configuration: ServiceConfiguration,
        lustre_client: LustreClient,
        identity_client: IdentityClient,
        store: ApplicationStore,
    ) -> None:
        """Inits the service with its collaborators."""
        self.configuration = configuration
        self.resolver = ClusterResolver(configuration.clusters)
        self.lustre_client = lustre_client
        self.store = store
        self.aggregator = QuotaAggregator(lustre_client, identity_client)
        self.processor = ReviewProcessor(store, lustre_client)

    def paging(self, query: Optional[dict] = None) -> PagingParams:
        """Returns paging parameters with the configured defaults."""
        return PagingParams.from_query(
            query or {},
            default_size=self.configuration.page_size,
            max_size=self.configuration.max_page_size,
        )

    def list_quotas(
        self,
        cluster: str,
        users: Optional[list[str]] = None,
        paging: Optional[PagingParams] = None,
        base_url: str = "",
    ) -> PageResponse:
        """Returns resolved quotas of the users (all users if none given) on all mounts."""
        with request_context(cluster=cluster):
            addr = self.resolver.lustre_server(cluster)
            identity_addr = None
            if not any(user.strip() for user in users or []):
                identity_addr = self.resolver.identity_server(cluster)
            quotas = self.aggregator.collect(addr, users, identity_addr)
        return PageResponse.build(paginate(quotas, paging), len(quotas), paging, base_url)

    def _set_quota(self, cluster: str, quota: UserQuota, user: Optional[str]) -> list[str]:
        mount = quota.filesystem.strip()
        if not mount:
            msg = "filesystem is required"
            raise ValidationError(msg)
        limit_command = commands.build_limit_command(quota.limits, mount, user)
        if limit_command is None:
            msg = "no quota limits to update"
            raise ValidationError(msg)
        grace_command = commands.build_grace_command(quota.limits, mount, user)
        addr = self.resolver.lustre_server(cluster)
        executed = [limit_command]
        self.lustre_client.run(addr, limit_command)
        if grace_command is not None:
            self.lustre_client.run(addr, grace_command)
            executed.append(grace_command)
        return executed

    def update_user_quota(self, cluster: str, user: str, quota: UserQuota) -> list[str]:
        """Set limits of the user on the filesystem given in the quota."""
        user = (user or "").strip()
        if not user:
            msg = "missing user"
            raise ValidationError(msg)
        with request_context(cluster=cluster, user=user):
            executed = self._set_quota(cluster, quota, user)
            logger.info("Quota of user %s on %s has been updated", user, quota.filesystem)
        return executed

    def update_default_quota(self, cluster: str, quota: UserQuota) -> list[str]:
        """Set default limits of the filesystem given in the quota, the user is ignored."""
        with request_context(cluster=cluster):
            executed = self._set_quota(cluster, quota, None)
            logger.info("Default quota on %s has been updated", quota.filesystem)
        return executed

    def list_applications(
        self,
        cluster: str,
        applier: Optional[str] = None,
        paging: Optional[PagingParams] = None,
        base_url: str = "",
    ) -> PageResponse:
        """Returns quota applications together with the quota currently in effect."""
        with request_context(cluster=cluster, applier=applier):
            applications, total = self.store.list(ApplicationClass.QUOTA.value, applier, paging)
            addr = self.resolver.lustre_server(cluster)
            views = []
            for application in applications:
                actual = None
                content = application.content
                if content.user and content.filesystem:
                    actual = self.aggregator.resolve_one(addr, content.user, content.filesystem)
                views.append(QuotaApplicationView(application=application, actual=actual))
        return PageResponse.build(views, total, paging, base_url)

    def create_application(self, quota: UserQuota, applier: Optional[str] = None) -> int:
        """Submit a quota change request, the applier defaults to the quota user."""
        return self.store.create(ApplicationClass.QUOTA.value, applier or quota.user, quota)

    def update_application(self, application_id: int, quota: UserQuota) -> None:
        """Replace the requested quota and restart the review."""
        with request_context(application_id=application_id):
            self.store.update(application_id, quota)

    def delete_application(self, application_id: int) -> None:
        """Delete the application."""
        with request_context(application_id=application_id):
            self.store.delete(application_id)

    def get_decision(self, application_id: int) -> str:
        """Returns the review decision of the application."""
        return self.store.get_decision(application_id)

    def review_application(
        self,
        cluster: str,
        application_id: int,
        approve: bool,
        decision: str,
        requested: UserQuota,
        reviewer: Optional[str] = None,
    ) -> ApplicationState:
        """Approve or reject the application, applying the quota on approval."""
        with request_context(cluster=cluster, application_id=application_id, reviewer=reviewer):
            addr = self.resolver.lustre_server(cluster) if approve else None
            return self.processor.review_application(
                application_id, approve, decision, requested, addr=addr, reviewer=reviewer
            )
