"""
Configuration module for shipledger.

Centralizes all configuration with environment variable support.
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional

from .security import ValidationError, validate_identity

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("SHIPLEDGER_ENV", "dev")  # dev|stage|prod

# Storage
STORE_TYPE = os.getenv("SHIPLEDGER_STORE", "sqlite")  # sqlite|memory
DB_PATH = os.getenv("SHIPLEDGER_DB_PATH", "data/shipledger.db")

# Owner identity: given directly, or derived from an actor key file
OWNER_IDENTITY = os.getenv("SHIPLEDGER_OWNER", "")
OWNER_KEY_PATH = os.getenv("SHIPLEDGER_OWNER_KEY_PATH", "secrets/owner_key.json")

# Rate limits (requests per minute, per actor)
WRITE_RPM = int(os.getenv("WRITE_RPM", "120"))

# Signed request freshness
REQUEST_MAX_AGE_SECONDS = int(os.getenv("REQUEST_MAX_AGE_SECONDS", "300"))
MAX_CLOCK_SKEW_SECONDS = int(os.getenv("MAX_CLOCK_SKEW_SECONDS", "30"))

# Event sinks
EVENT_SINK = os.getenv("EVENT_SINK", "none")  # none|webhook|s3_object_lock
EVENT_WEBHOOK_URL = os.getenv("EVENT_WEBHOOK_URL", "")
S3_BUCKET = os.getenv("S3_BUCKET", "")
S3_PREFIX = os.getenv("S3_PREFIX", "shipledger/events/")
S3_RETENTION_DAYS = int(os.getenv("S3_RETENTION_DAYS", "365"))
S3_LEGAL_HOLD = os.getenv("S3_LEGAL_HOLD", "OFF")  # ON|OFF

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "1").lower() in ("1", "true", "yes")


def load_owner_identity(key_path: Optional[str] = None) -> str:
    """
    Resolve the owner identity.

    SHIPLEDGER_OWNER wins; otherwise the ``identity`` field of the owner key
    file is used. Either way the value must be an actor identity and is
    returned in the lowercase form request verification produces.

    Raises:
        RuntimeError: If neither is available or the identity is malformed
    """
    identity = OWNER_IDENTITY
    if not identity:
        path = key_path or OWNER_KEY_PATH
        try:
            with open(path, "r", encoding="utf-8") as f:
                identity = json.load(f)["identity"]
        except (FileNotFoundError, KeyError, json.JSONDecodeError) as e:
            raise RuntimeError(
                "owner identity not configured: set SHIPLEDGER_OWNER or SHIPLEDGER_OWNER_KEY_PATH"
            ) from e
    try:
        return validate_identity(identity, "owner")
    except ValidationError as e:
        raise RuntimeError(f"owner identity is invalid: {e}") from None


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that required configuration is present.
    Returns dict of setting -> present.
    """
    checks = {
        "owner": bool(OWNER_IDENTITY) or Path(OWNER_KEY_PATH).exists(),
        "store_type": STORE_TYPE in ("sqlite", "memory"),
    }
    if EVENT_SINK == "webhook":
        checks["event_webhook_url"] = bool(EVENT_WEBHOOK_URL)
    if EVENT_SINK == "s3_object_lock":
        checks["s3_bucket"] = bool(S3_BUCKET)
    return checks

