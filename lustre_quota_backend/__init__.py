"""Lustre quota reconciliation and application review backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    LUSTRE_QUOTA_BACKEND_VERSION = version("lustre-quota-backend")
except PackageNotFoundError:
    LUSTRE_QUOTA_BACKEND_VERSION = "0.1.0"
