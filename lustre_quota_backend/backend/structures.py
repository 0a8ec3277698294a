"""Quota and application structures shared by the backend components."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

NONE_SENTINEL = "none"

# Column of `df -t lustre` output holding the mount point
LUSTRE_MOUNTED = "Mounted"
LUSTRE_FILESYSTEM = "Filesystem"

# Keys used by the executor service in quota results and by persisted content
QUOTA_FILESYSTEM = "filesystem"
QUOTA_USER = "user"

# Field name -> wire name
LIMIT_FIELDS = {
    "block_soft": "block_quota_soft_limit",
    "block_hard": "block_quota_hard_limit",
    "block_grace": "block_quota_grace",
    "file_soft": "file_quota_soft_limit",
    "file_hard": "file_quota_hard_limit",
    "file_grace": "file_quota_grace",
}


def parse_limit(value: Optional[str]) -> Optional[str]:
    """Parse an external limit value.

    Empty values and the "none" sentinel become None (unset),
    anything else is returned trimmed.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() == NONE_SENTINEL:
        return None
    return value


def first_non_blank(*values: Optional[str]) -> str:
    """Returns the first value which is not blank."""
    for value in values:
        if value is not None and str(value).strip():
            return str(value)
    return ""


@dataclass
class QuotaLimitSet:
    """Block and inode limits of a quota, None means unset."""

    block_soft: Optional[str] = None
    block_hard: Optional[str] = None
    block_grace: Optional[str] = None
    file_soft: Optional[str] = None
    file_hard: Optional[str] = None
    file_grace: Optional[str] = None

    def __post_init__(self) -> None:
        for item in fields(self):
            setattr(self, item.name, parse_limit(getattr(self, item.name)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuotaLimitSet:
        """Build limits from a mapping keyed by wire names."""
        return cls(**{name: data.get(key) for name, key in LIMIT_FIELDS.items()})

    def to_dict(self) -> dict[str, str]:
        """Render limits with wire names, unset values become empty strings."""
        return {key: getattr(self, name) or "" for name, key in LIMIT_FIELDS.items()}

    def is_empty(self) -> bool:
        """True if no limit is set."""
        return all(getattr(self, name) is None for name in LIMIT_FIELDS)

    def resolve(self, default: Optional[QuotaLimitSet]) -> QuotaLimitSet:
        """Fill every unset field from the default, field by field."""
        if default is None:
            return QuotaLimitSet(**{name: getattr(self, name) for name in LIMIT_FIELDS})
        return QuotaLimitSet(
            **{
                name: getattr(self, name) if getattr(self, name) is not None
                else getattr(default, name)
                for name in LIMIT_FIELDS
            }
        )


@dataclass
class UserQuota:
    """Quota of a user on a filesystem.

    An empty user denotes the default quota of the filesystem.
    """

    user: str = ""
    filesystem: str = ""
    limits: QuotaLimitSet = field(default_factory=QuotaLimitSet)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> UserQuota:
        """Build a quota from its JSON representation."""
        data = data or {}
        return cls(
            user=str(data.get(QUOTA_USER) or "").strip(),
            filesystem=str(data.get(QUOTA_FILESYSTEM) or "").strip(),
            limits=QuotaLimitSet.from_dict(data),
        )

    def to_dict(self) -> dict[str, str]:
        """JSON representation of the quota."""
        result = {QUOTA_USER: self.user, QUOTA_FILESYSTEM: self.filesystem}
        result.update(self.limits.to_dict())
        return result


@dataclass
class QuotaRecord:
    """Quota result returned by the executor service for `lfs quota`."""

    filesystem: str = ""
    limits: QuotaLimitSet = field(default_factory=QuotaLimitSet)
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_backend(cls, result: dict[str, Any]) -> QuotaRecord:
        """Parse a result map, unknown keys are kept in `extra`."""
        known = set(LIMIT_FIELDS.values()) | {QUOTA_FILESYSTEM}
        return cls(
            filesystem=str(result.get(QUOTA_FILESYSTEM) or "").strip(),
            limits=QuotaLimitSet.from_dict(result),
            extra={key: value for key, value in result.items() if key not in known},
        )


@dataclass
class MountEntry:
    """Line of `df -t lustre` output."""

    filesystem: str = ""
    mounted: str = ""
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_backend(cls, row: dict[str, Any]) -> MountEntry:
        """Parse a row of the mounts result."""
        return cls(
            filesystem=str(row.get(LUSTRE_FILESYSTEM) or "").strip(),
            mounted=str(row.get(LUSTRE_MOUNTED) or "").strip(),
            extra={
                key: value
                for key, value in row.items()
                if key not in (LUSTRE_FILESYSTEM, LUSTRE_MOUNTED)
            },
        )


@dataclass
class LdapUser:
    """User entry of the identity service."""

    uid: str = ""
    name: str = ""
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_backend(cls, row: dict[str, Any]) -> LdapUser:
        """Parse a user map returned by the identity service."""
        return cls(
            uid=str(row.get("uid") or ""),
            name=str(row.get("name") or ""),
            extra={key: value for key, value in row.items() if key not in ("uid", "name")},
        )

    @property
    def username(self) -> str:
        """Login name of the user."""
        return first_non_blank(
            self.uid, self.name, self.extra.get("UID"), self.extra.get("User")
        ).strip()


class ApplicationState(IntEnum):
    """Review states of an application, values are persisted."""

    REJECTED = 0
    PASSED = 1
    REVIEWING = 2
    # Approved, but applying the quota failed
    PASSED_UNSUCCESS = 3

    @property
    def label(self) -> str:
        """Human-readable state."""
        return APPLICATION_STATE_LABELS[self]


APPLICATION_STATE_LABELS = {
    ApplicationState.REJECTED: "rejected",
    ApplicationState.PASSED: "passed",
    ApplicationState.REVIEWING: "reviewing",
    ApplicationState.PASSED_UNSUCCESS: "passed, but quota configuration failed",
}


class ApplicationClass(Enum):
    """Kinds of applications sharing the applications table."""

    QUOTA = "lustre"
    RESOURCE = "slurm"


@dataclass
class QuotaApplication:
    """Persisted quota change request."""

    id: int
    application_class: str = ApplicationClass.QUOTA.value
    state: ApplicationState = ApplicationState.REVIEWING
    applier: str = ""
    reviewer: str = ""
    apply_at: Optional[datetime] = None
    review_at: Optional[datetime] = None
    decision: str = ""
    content: UserQuota = field(default_factory=UserQuota)
    version: int = 1


@dataclass
class QuotaApplicationView:
    """Application together with the quota currently in effect."""

    application: QuotaApplication
    actual: Optional[UserQuota] = None

    def to_dict(self) -> dict[str, Any]:
        """JSON representation used in API results."""
        app = self.application
        return {
            "id": app.id,
            "state": app.state.label,
            "applier": app.applier,
            "reviewer": app.reviewer,
            "apply_at": app.apply_at.isoformat() if app.apply_at else "",
            "review_at": app.review_at.isoformat() if app.review_at else "",
            "decision": app.decision,
            "apply": app.content.to_dict(),
            "actual": self.actual.to_dict() if self.actual else UserQuota().to_dict(),
        }
