"""Configuration, pagination and shared helpers of the quota backend.

The constants below provide default values that can be overridden via
environment variables.
"""

import os

LUSTRE_QUOTA_BACKEND_CONFIG = os.environ.get(
    "LUSTRE_QUOTA_BACKEND_CONFIG", "lustre-quota-backend-config.yaml"
)
LUSTRE_QUOTA_BACKEND_LOG_LEVEL = os.environ.get("LUSTRE_QUOTA_BACKEND_LOG_LEVEL", "")
