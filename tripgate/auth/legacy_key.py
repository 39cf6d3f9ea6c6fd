"""Legacy shared-secret (X-API-Key) check.

Interim owner-equivalent override for integrations that predate bearer
credentials. The secret is stored as a bcrypt hash in
TRIPGATE_LEGACY_API_KEY_HASH; when unset the override is disabled.
"""

import logging

import bcrypt as bcrypt_lib

log = logging.getLogger(__name__)

# Default bcrypt cost factor (2^12 = 4096 iterations)
BCRYPT_COST_FACTOR = 12


def hash_legacy_key(raw_key: str, rounds: int = BCRYPT_COST_FACTOR) -> str:
    """Hash a raw key for TRIPGATE_LEGACY_API_KEY_HASH."""
    return bcrypt_lib.hashpw(raw_key.encode(), bcrypt_lib.gensalt(rounds=rounds)).decode()


def verify_legacy_key(raw_key: str | None, key_hash: str | None = None) -> bool:
    """Check a raw X-API-Key value against the configured bcrypt hash.

    Uses bcrypt.checkpw() for constant-time comparison.

    Args:
        raw_key: Header value
        key_hash: Hash to check against (defaults to config)
    """
    if key_hash is None:
        from tripgate.config import LEGACY_API_KEY_HASH

        key_hash = LEGACY_API_KEY_HASH

    if not raw_key or not key_hash:
        return False

    try:
        return bcrypt_lib.checkpw(raw_key.encode(), key_hash.encode())
    except ValueError:
        # checkpw raises on a malformed hash
        log.error("TRIPGATE_LEGACY_API_KEY_HASH is not a valid bcrypt hash")
        return False
