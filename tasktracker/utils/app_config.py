"""Application configuration read from environment variables."""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


class AppConfig:
    """Domain engine settings."""

    # memory | supabase
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "supabase").lower()

    DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))

    # Lookups attempted after a tag insert loses the unique-constraint race
    TAG_CONFLICT_RETRIES = int(os.environ.get("TAG_CONFLICT_RETRIES", "3"))

    AUDIT_LOG_ENABLED = _env_bool("AUDIT_LOG_ENABLED", "true")
    AUDIT_LOG_WORKERS = int(os.environ.get("AUDIT_LOG_WORKERS", "2"))
