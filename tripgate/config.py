"""TripGate configuration constants.

Environment-based configuration grouped by concern:
- PERSISTENCE: database location
- IDENTITY PROVIDER: signed credential verification
- MESSAGING: outbound one-time code delivery
- VERIFICATION POLICY: code/session lifetimes and brute-force limits
- SECURITY: legacy shared-secret override
"""
import os
from pathlib import Path


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================

def _get_data_dir() -> Path:
    """Determine data directory based on environment.

    Priority:
    1. TRIPGATE_DATA_DIR env var (explicit override)
    2. /data/tripgate if it exists (Docker volume mount)
    3. ~/.tripgate (local development)
    4. /tmp/tripgate (container fallback when home unavailable)
    """
    env_path = os.getenv("TRIPGATE_DATA_DIR")
    if env_path:
        return Path(env_path)

    docker_path = Path("/data/tripgate")
    if docker_path.exists():
        return docker_path

    try:
        home_path = Path.home() / ".tripgate"
        home_path.mkdir(parents=True, exist_ok=True)
        return home_path
    except (OSError, PermissionError):
        return Path("/tmp/tripgate")


DATA_DIR: Path = _get_data_dir()


def _get_database_url() -> str:
    """Get database URL from environment.

    Priority:
    1. TRIPGATE_DATABASE_URL - explicit full connection string
    2. TRIPGATE_POSTGRES_* - construct PostgreSQL URL from components
    3. SQLite fallback for local development
    """
    if url := os.getenv("TRIPGATE_DATABASE_URL"):
        return url

    host = os.getenv("TRIPGATE_POSTGRES_HOST")
    if host:
        user = os.getenv("TRIPGATE_POSTGRES_USER", "tripgate")
        password = os.getenv("TRIPGATE_POSTGRES_PASSWORD", "")
        db = os.getenv("TRIPGATE_POSTGRES_DB", "tripgate")
        return f"postgresql+psycopg://{user}:{password}@{host}/{db}?sslmode=require"

    return f"sqlite:///{DATA_DIR}/tripgate.db"


DATABASE_URL: str = _get_database_url()


# =============================================================================
# IDENTITY PROVIDER (signed bearer credentials)
# =============================================================================

# JWKS endpoint publishing the identity provider's current signing keys
JWKS_URL: str | None = os.getenv("TRIPGATE_JWKS_URL")
JWT_ISSUER: str | None = os.getenv("TRIPGATE_JWT_ISSUER")
JWT_AUDIENCE: str | None = os.getenv("TRIPGATE_JWT_AUDIENCE")
JWT_ALGORITHMS: list[str] = [
    a.strip()
    for a in os.getenv("TRIPGATE_JWT_ALGORITHMS", "RS256").split(",")
    if a.strip()
]
JWKS_CACHE_SECONDS: int = int(os.getenv("TRIPGATE_JWKS_CACHE_SECONDS", "300"))


# =============================================================================
# MESSAGING GATEWAY
# =============================================================================

# No URL configured -> codes are only logged (masked), never sent
SMS_GATEWAY_URL: str | None = os.getenv("TRIPGATE_SMS_GATEWAY_URL")
SMS_ACCOUNT_ID: str | None = os.getenv("TRIPGATE_SMS_ACCOUNT_ID")
SMS_AUTH_TOKEN: str | None = os.getenv("TRIPGATE_SMS_AUTH_TOKEN")
SMS_FROM: str = os.getenv("TRIPGATE_SMS_FROM", "TripGate")
SMS_TIMEOUT_SECONDS: float = float(os.getenv("TRIPGATE_SMS_TIMEOUT", "10.0"))


# =============================================================================
# VERIFICATION POLICY
# =============================================================================

CODE_TTL_SECONDS: int = int(os.getenv("TRIPGATE_CODE_TTL", "600"))  # 10 minutes
CODE_MAX_ATTEMPTS: int = int(os.getenv("TRIPGATE_CODE_MAX_ATTEMPTS", "5"))
CODE_LENGTH: int = 6

# Code issuance: 3 requests per invite token per rolling hour
CODE_REQUEST_LIMIT: int = int(os.getenv("TRIPGATE_CODE_REQUEST_LIMIT", "3"))
CODE_REQUEST_WINDOW_SECONDS: int = int(os.getenv("TRIPGATE_CODE_REQUEST_WINDOW", "3600"))

# Code verification: per client IP
VERIFY_IP_LIMIT: int = int(os.getenv("TRIPGATE_VERIFY_IP_LIMIT", "20"))
VERIFY_IP_WINDOW_SECONDS: int = int(os.getenv("TRIPGATE_VERIFY_IP_WINDOW", "900"))

GUEST_SESSION_TTL_SECONDS: int = int(os.getenv("TRIPGATE_GUEST_SESSION_TTL", "1800"))  # 30 minutes
SESSION_CLEANUP_INTERVAL: int = int(os.getenv("TRIPGATE_SESSION_CLEANUP_INTERVAL", "300"))


# =============================================================================
# SECURITY CONFIGURATION
# =============================================================================

# Request headers carrying identity proofs
GUEST_SESSION_HEADER: str = "X-Guest-Session"
INVITE_TOKEN_HEADER: str = "X-Invite-Token"
LEGACY_API_KEY_HEADER: str = "X-API-Key"

# Interim shared-secret override (bcrypt hash). Unset disables the override.
LEGACY_API_KEY_HASH: str | None = os.getenv("TRIPGATE_LEGACY_API_KEY_HASH")

AUDIT_ENABLED: bool = os.getenv("TRIPGATE_AUDIT_ENABLED", "true").lower() == "true"


# =============================================================================
# OPERATIONAL
# =============================================================================

SERVICE_PORT: int = int(os.getenv("TRIPGATE_PORT", "8001"))


def validate_identity_provider_config() -> tuple[bool, str | None]:
    """Validate identity provider configuration.

    Returns:
        Tuple of (is_valid, error_message). If is_valid is False,
        error_message contains the reason.
    """
    missing = []
    if not JWKS_URL:
        missing.append("TRIPGATE_JWKS_URL")
    if not JWT_AUDIENCE:
        missing.append("TRIPGATE_JWT_AUDIENCE")

    if missing:
        return False, f"Signed credentials disabled, missing config: {', '.join(missing)}"

    return True, None
