"""HTTP clients for the Lustre command executor and the identity service."""

import shlex
from typing import Any, Optional

import requests

from lustre_quota_backend.backend import logger
from lustre_quota_backend.backend.exceptions import UpstreamError
from lustre_quota_backend.backend.structures import (
    LdapUser,
    MountEntry,
    QuotaLimitSet,
    QuotaRecord,
)

RESPONSE_CODE_OK = 200
EXECUTE_CMD_PATH = "/api/lustre/execute_cmd"
LDAP_USERS_PATH = "/api/v1/ldap/users"


class BaseHttpClient:
    """Generic client for a backend service reachable by address."""

    def __init__(
        self,
        scheme: str = "http",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Init client settings.

        Args:
            scheme: URL scheme used to reach the service
            timeout: Request timeout in seconds
            session: Session to reuse, a new one is created if omitted
        """
        self.scheme = scheme
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _url(self, addr: str, path: str) -> str:
        return f"{self.scheme}://{addr.strip().rstrip('/')}{path}"

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
    ) -> Any:
        """Make a request and decode the JSON body.

        Raises:
            UpstreamError: If the request fails, the status is not 2xx
                or the body is not JSON
        """
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Request to {url} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Unable to decode response of {url}, status {response.status_code}"
            ) from e

        if not 200 <= response.status_code < 300:
            detail = ""
            if isinstance(body, dict):
                detail = body.get("message") or body.get("detail") or ""
            raise UpstreamError(
                f"Unexpected http status: {response.status_code}, detail: {detail}"
            )
        return body


class LustreClient(BaseHttpClient):
    """Client for the command execution service running on Lustre servers.

    Queries are sent as GET with the command in the query string,
    control commands are sent as POST with a JSON body.
    Responses have the form {"code": int, "message": str, "result": ...}.
    """

    def _unwrap(self, body: Any, operation: str) -> Any:
        if not isinstance(body, dict):
            msg = f"lustre {operation} failed: malformed response"
            raise UpstreamError(msg)
        code = body.get("code")
        if code != RESPONSE_CODE_OK:
            msg = f"lustre {operation} failed: code={code}, msg={body.get('message', '')}"
            raise UpstreamError(msg, code=code)
        return body.get("result")

    def query(self, addr: str, command: str, operation: str = "query") -> Any:
        """Execute a read-only command and return its result."""
        logger.debug("Querying lustre on %s: %s", addr, command)
        body = self._request("GET", self._url(addr, EXECUTE_CMD_PATH), params={"command": command})
        return self._unwrap(body, operation)

    def run(self, addr: str, command: str) -> None:
        """Execute a privileged control command."""
        logger.info("Executing lustre command on %s: %s", addr, command)
        body = self._request(
            "POST", self._url(addr, EXECUTE_CMD_PATH), json_data={"command": command}
        )
        self._unwrap(body, "control")

    def list_mounts(self, addr: str) -> list[str]:
        """Returns mount points of Lustre filesystems."""
        result = self.query(addr, "df -t lustre", operation="get mounts") or []
        if not isinstance(result, list):
            msg = "lustre get mounts failed: result is not a list"
            raise UpstreamError(msg)
        entries = [MountEntry.from_backend(row) for row in result if isinstance(row, dict)]
        return [entry.mounted for entry in entries if entry.mounted]

    def _get_quota(self, addr: str, command: str, operation: str) -> Optional[QuotaRecord]:
        result = self.query(addr, command, operation=operation)
        if not result:
            return None
        if not isinstance(result, dict):
            msg = f"lustre {operation} failed: result is not a mapping"
            raise UpstreamError(msg)
        return QuotaRecord.from_backend(result)

    def get_default_quota_record(self, addr: str, mount: str) -> Optional[QuotaRecord]:
        """Returns the default quota record of the mount."""
        command = f"lfs quota -U {shlex.quote(mount)}"
        return self._get_quota(addr, command, "get default quota")

    def get_user_quota_record(self, addr: str, user: str, mount: str) -> Optional[QuotaRecord]:
        """Returns the quota record of the user on the mount."""
        command = f"lfs quota -u {shlex.quote(user)} {shlex.quote(mount)}"
        return self._get_quota(addr, command, "get user quota")

    def get_default_quota(self, addr: str, mount: str) -> Optional[QuotaLimitSet]:
        """Returns the default limits of the mount."""
        record = self.get_default_quota_record(addr, mount)
        return record.limits if record else None

    def get_user_quota(self, addr: str, user: str, mount: str) -> Optional[QuotaLimitSet]:
        """Returns the limits of the user on the mount."""
        record = self.get_user_quota_record(addr, user, mount)
        return record.limits if record else None

    def ping(self, addr: str) -> bool:
        """Check if the executor service is accessible."""
        try:
            self.list_mounts(addr)
        except UpstreamError:
            logger.exception("Lustre executor %s is not accessible", addr)
            return False
        return True


class IdentityClient(BaseHttpClient):
    """Client for the LDAP-fronting identity service."""

    def list_ldap_users(self, addr: str) -> list[LdapUser]:
        """Returns all users known to the identity service."""
        body = self._request(
            "GET", self._url(addr, LDAP_USERS_PATH), params={"paging": "false"}
        )
        if not isinstance(body, dict):
            msg = "identity service returned malformed users response"
            raise UpstreamError(msg)
        results = body.get("results") or []
        return [LdapUser.from_backend(row) for row in results if isinstance(row, dict)]

    def list_users(self, addr: str) -> list[str]:
        """Returns login names of all users."""
        return [user.username for user in self.list_ldap_users(addr) if user.username]
