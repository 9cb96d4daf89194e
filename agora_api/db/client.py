"""Supabase client configuration.

SECURITY NOTICE:
- The API talks to Supabase with the service role key (bypasses RLS), so every
  authorization decision is taken by this service before it touches a table.
- The key is server-only and never logged.
"""

import logging
from functools import lru_cache

from supabase import Client, create_client

from agora_api.config.env import get_supabase_secret_key, get_supabase_url

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get the service-role Supabase client.

    Returns:
        Client: Supabase client instance

    Raises:
        RuntimeError: If environment variables not set
    """
    url = get_supabase_url()
    secret_key = get_supabase_secret_key()

    logger.info(
        "Initializing Supabase client",
        extra={
            "supabase_url": url,
            "key_type": "service_role",
        },
    )

    return create_client(url, secret_key)
