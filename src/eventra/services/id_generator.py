"""Prefixed public identifiers."""

import re
import secrets

EVENT_PREFIX = "evt_"
WEBHOOK_PREFIX = "whk_"
DELIVERY_PREFIX = "dlv_"
DELIVERY_RECORD_PREFIX = "whd_"
FAILED_ITEM_PREFIX = "failed_"

ID_HEX_LENGTH = 16
_ID_SUFFIX = re.compile(rf"^[0-9a-f]{{{ID_HEX_LENGTH}}}$")


def generate_id(prefix: str) -> str:
    """``prefix`` followed by 16 random hex characters, e.g. ``evt_a1b2c3d4e5f6a7b8``."""
    return f"{prefix}{secrets.token_hex(ID_HEX_LENGTH // 2)}"


def is_generated_id(value: str, prefix: str) -> bool:
    return value.startswith(prefix) and bool(_ID_SUFFIX.match(value[len(prefix):]))
