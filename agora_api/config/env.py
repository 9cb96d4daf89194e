"""Environment variable resolution.

Canonical env names + fail-fast validation at use time. Getters are cached
because the process environment is fixed once the server has started; tests
call ``clear_env_cache()`` after patching the environment.

KEY NAMING:
- SUPABASE_SERVICE_ROLE_KEY is the legacy name of the server-side secret key
- SB_SECRET_KEY is the newer name and wins when both are set
"""

import logging
import os
from functools import lru_cache

logger = logging.getLogger(__name__)

DEFAULT_JWT_AUDIENCE = "authenticated"

_LOCAL_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


@lru_cache(maxsize=1)
def get_supabase_url() -> str:
    """Get Supabase project URL from environment.

    Returns:
        str: Supabase URL (https://[project_ref].supabase.co)

    Raises:
        RuntimeError: If SUPABASE_URL not set
    """
    url = os.getenv("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL environment variable not set.")
    return url


@lru_cache(maxsize=1)
def get_supabase_secret_key() -> str:
    """Get the Supabase service role key from environment.

    Priority:
    1. SB_SECRET_KEY
    2. SUPABASE_SERVICE_ROLE_KEY (legacy)

    The key bypasses row level security; it must never reach a client.

    Raises:
        RuntimeError: If neither key is set
    """
    key = os.getenv("SB_SECRET_KEY")
    if key:
        return key

    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if key:
        return key

    raise RuntimeError(
        "Neither SB_SECRET_KEY nor SUPABASE_SERVICE_ROLE_KEY environment variable is set."
    )


@lru_cache(maxsize=1)
def get_jwt_secret() -> str:
    """Get the shared secret used to verify Supabase access tokens.

    Raises:
        RuntimeError: If SUPABASE_JWT_SECRET not set
    """
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if not secret:
        raise RuntimeError("SUPABASE_JWT_SECRET environment variable not set.")
    return secret


@lru_cache(maxsize=1)
def get_jwt_audience() -> str | None:
    """Get the expected ``aud`` claim.

    An explicitly empty SUPABASE_JWT_AUDIENCE disables the audience check.
    """
    audience = os.getenv("SUPABASE_JWT_AUDIENCE", DEFAULT_JWT_AUDIENCE)
    return audience or None


def get_cors_origins() -> list[str]:
    """Get allowed CORS origins (comma-separated CORS_ORIGINS)."""
    raw = os.getenv("CORS_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or list(_LOCAL_CORS_ORIGINS)


def get_agora_env() -> str:
    """Get the deployment environment name (lowercase, default "local")."""
    return os.getenv("AGORA_ENV", "local").lower()


def json_logs_enabled() -> bool:
    """Structured JSON logs are on unless AGORA_JSON_LOGS=false."""
    return os.getenv("AGORA_JSON_LOGS", "true").lower() != "false"


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def require_supabase_secrets() -> list[str]:
    """Return the names of required Supabase settings that are missing."""
    missing = []
    if not os.getenv("SUPABASE_URL"):
        missing.append("SUPABASE_URL")
    if not (os.getenv("SB_SECRET_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY")):
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if not os.getenv("SUPABASE_JWT_SECRET"):
        missing.append("SUPABASE_JWT_SECRET")
    return missing


def clear_env_cache() -> None:
    """Drop cached values so the next call re-reads the environment."""
    get_supabase_url.cache_clear()
    get_supabase_secret_key.cache_clear()
    get_jwt_secret.cache_clear()
    get_jwt_audience.cache_clear()
