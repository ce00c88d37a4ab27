# =============================================================================
# rental_core/data/__init__.py
# =============================================================================

from .supabase_client import RemoteStoreClient, create_supabase_client

__all__ = ["RemoteStoreClient", "create_supabase_client"]
