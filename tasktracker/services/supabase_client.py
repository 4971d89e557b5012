"""Supabase client wrapper with context manager support."""

import os
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from tasktracker.utils.errors import StorageError
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


def close_supabase_client() -> None:
    """Drop the Supabase client singleton."""
    global _client
    if _client:
        # supabase-py has no explicit close; clearing the reference is enough
        _client = None
        logger.info("Supabase client closed")


class SupabaseClient:
    """Context manager handing out a Supabase client and logging failures."""

    def __init__(self, client: Optional[Client] = None):
        self._injected = client
        self.client: Optional[Client] = None

    def __enter__(self) -> Client:
        self.client = self._injected or get_supabase_client()
        return self.client

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False
