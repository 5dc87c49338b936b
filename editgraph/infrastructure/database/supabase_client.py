from __future__ import annotations

import os

from supabase import Client, create_client

# Simple reusable singleton client getter for storage adapters
_CLIENT_SINGLETON: Client | None = None


def supabase_settings() -> tuple[str | None, str | None, bool]:
    disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
    return os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_ANON_KEY"), disabled


def get_supabase_client() -> Client | None:
    """Return the shared Supabase client, or None when credentials are missing."""
    global _CLIENT_SINGLETON
    url, key, disabled = supabase_settings()
    if disabled or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
