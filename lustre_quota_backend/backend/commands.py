"""Builders of `lfs setquota` commands.

The command strings are executed with privileges on the Lustre servers,
so every interpolated value is checked against a whitelist pattern first.

See also: https://doc.lustre.org/lustre_manual.xhtml#quota_configuring
"""

import re
from typing import Optional

from lustre_quota_backend.backend.exceptions import ValidationError
from lustre_quota_backend.backend.structures import QuotaLimitSet

LFS_SETQUOTA = ["lfs", "setquota"]
DEFAULT_QUOTA_TARGET = "0"

USER_NAME_REGEX = re.compile(r"[a-zA-Z0-9_][a-zA-Z0-9._-]*")
MOUNT_POINT_REGEX = re.compile(r"/[a-zA-Z0-9._/-]*")
# Number with an optional unit suffix, e.g. 500, 10G, 2T
LIMIT_VALUE_REGEX = re.compile(r"[0-9]+[kKmMgGtTpPeE]?")
# Seconds or a sequence of counted units, e.g. 604800, 1w, 1w3d12h
GRACE_VALUE_REGEX = re.compile(r"[0-9]+|(?:[0-9]+[wdhms])+")

# Limit field -> flag, in emission order
LIMIT_FLAGS = (
    ("block_soft", "-b"),
    ("block_hard", "-B"),
    ("file_soft", "-i"),
    ("file_hard", "-I"),
)


def _check(value: str, pattern: re.Pattern, what: str) -> str:
    if not pattern.fullmatch(value):
        msg = f"invalid {what}: {value!r}"
        raise ValidationError(msg)
    return value


def _target(user: Optional[str]) -> str:
    user = (user or "").strip()
    if not user:
        return DEFAULT_QUOTA_TARGET
    return _check(user, USER_NAME_REGEX, "user name")


def _mount(mount: str) -> str:
    return _check(mount.strip(), MOUNT_POINT_REGEX, "mount point")


def build_limit_command(
    limits: QuotaLimitSet, mount: str, user: Optional[str] = None
) -> Optional[str]:
    """Returns the command setting block and inode limits.

    Without a user the command updates the default quota of the mount.
    None is returned if no limit is set, so there is nothing to update.

    Raises:
        ValidationError: If the user, the mount or a limit is not well-formed
    """
    parts = [*LFS_SETQUOTA, "-u", _target(user)]
    base_length = len(parts)
    for name, flag in LIMIT_FLAGS:
        value = getattr(limits, name)
        if value is not None:
            parts.extend([flag, _check(value, LIMIT_VALUE_REGEX, f"{name} limit")])
    if len(parts) == base_length:
        return None
    parts.append(_mount(mount))
    return " ".join(parts)


def build_grace_command(
    limits: QuotaLimitSet, mount: str, user: Optional[str] = None
) -> Optional[str]:
    """Returns the command setting grace periods or None if no grace is set."""
    grace_flags = []
    if limits.block_grace is not None:
        value = _check(limits.block_grace, GRACE_VALUE_REGEX, "block grace")
        grace_flags.append(f"--block-grace={value}")
    if limits.file_grace is not None:
        value = _check(limits.file_grace, GRACE_VALUE_REGEX, "inode grace")
        grace_flags.append(f"--inode-grace={value}")
    if not grace_flags:
        return None
    return " ".join([*LFS_SETQUOTA, "-t", "-u", _target(user), *grace_flags, _mount(mount)])


def build_setquota_commands(
    limits: QuotaLimitSet, mount: str, user: Optional[str] = None
) -> list[str]:
    """Returns the commands applying the limits, an empty list means nothing to update.

    Both commands are validated before any is returned.
    """
    commands = [
        build_limit_command(limits, mount, user),
        build_grace_command(limits, mount, user),
    ]
    return [command for command in commands if command is not None]
