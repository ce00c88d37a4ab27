# =============================================================================
# rental_core/data/supabase_client.py
# Supabase Client Configuration for Rental Manager
# Handles the database connection and owner-scoped CRUD operations
# =============================================================================

from __future__ import annotations
from typing import Any, Dict, List, Optional

from rental_core.config import AppSettings
from rental_core.errors import ConfigurationError, RemoteStoreError
from rental_core.logging import get_logger

logger = get_logger(__name__)

OWNER_COLUMN = "user_id"


def create_supabase_client(settings: AppSettings):
    """
    Create a Supabase client from settings.

    One client per browser session: the client carries the auth session, so
    it must not be shared between users.

    Returns:
        Supabase client instance, or None if Supabase is not configured

    Raises:
        ConfigurationError: If the client cannot be created from the settings
    """
    if not settings.is_remote_configured:
        return None

    from supabase import create_client
    from supabase.client import ClientOptions

    try:
        options = ClientOptions(
            postgrest_client_timeout=settings.remote_timeout_seconds,
            auto_refresh_token=True,
            persist_session=False,
        )
        return create_client(settings.supabase_url, settings.supabase_key, options=options)
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize Supabase client: {e}",
            config_key="supabase",
        )


class RemoteStoreClient:
    """
    Owner-scoped CRUD against Supabase tables.

    Every call filters on the owner column, so a guessed id belonging to
    another user matches zero rows. All failures raise RemoteStoreError.
    """

    BATCH_SIZE = 1000  # Supabase default row limit per request

    def __init__(self, client):
        """
        Args:
            client: Supabase client (or any object exposing .table())
        """
        self.client = client

    def is_connected(self) -> bool:
        """Check if Supabase client is available."""
        return self.client is not None

    def _require_client(self, table: str, operation: str) -> None:
        if not self.is_connected():
            raise RemoteStoreError(
                "Supabase is not configured",
                table=table,
                operation=operation,
            )

    def fetch_owned(self, table: str, user_id: str) -> List[Dict[str, Any]]:
        """
        Fetch ALL rows owned by user_id (paginates past the 1000 row limit).

        Returns:
            List of row dicts
        """
        self._require_client(table, "select")

        try:
            rows: List[Dict[str, Any]] = []
            offset = 0

            while True:
                response = (
                    self.client.table(table)
                    .select("*")
                    .eq(OWNER_COLUMN, user_id)
                    .range(offset, offset + self.BATCH_SIZE - 1)
                    .execute()
                )

                batch = response.data or []
                rows.extend(batch)
                # Fewer than a full batch means we've reached the end
                if len(batch) < self.BATCH_SIZE:
                    break
                offset += self.BATCH_SIZE

            logger.debug(f"Fetched {len(rows)} rows from {table}")
            return rows

        except Exception as e:
            raise RemoteStoreError(
                f"Error fetching rows from {table}: {e}",
                table=table,
                operation="select",
            ) from e

    def insert(self, table: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Insert a single row (record must carry user_id).

        Returns:
            The stored row as returned by the server, or None if the
            server returned no representation
        """
        self._require_client(table, "insert")

        try:
            response = self.client.table(table).insert(record).execute()
            return _first_row(response)
        except Exception as e:
            raise RemoteStoreError(
                f"Error inserting into {table}: {e}",
                table=table,
                operation="insert",
            ) from e

    def update(
        self,
        table: str,
        record_id: str,
        user_id: str,
        fields: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Update the row matching both id and owner.

        Returns:
            The stored row, or None when no row matched (not an error)
        """
        self._require_client(table, "update")

        try:
            response = (
                self.client.table(table)
                .update(fields)
                .eq("id", record_id)
                .eq(OWNER_COLUMN, user_id)
                .execute()
            )
            return _first_row(response)
        except Exception as e:
            raise RemoteStoreError(
                f"Error updating {table}/{record_id}: {e}",
                table=table,
                operation="update",
            ) from e

    def delete(self, table: str, record_id: str, user_id: str) -> None:
        """Delete the row matching both id and owner."""
        self._require_client(table, "delete")

        try:
            (
                self.client.table(table)
                .delete()
                .eq("id", record_id)
                .eq(OWNER_COLUMN, user_id)
                .execute()
            )
        except Exception as e:
            raise RemoteStoreError(
                f"Error deleting {table}/{record_id}: {e}",
                table=table,
                operation="delete",
            ) from e


def _first_row(response) -> Optional[Dict[str, Any]]:
    data = getattr(response, "data", None)
    if not data:
        return None
    return data[0] if isinstance(data, list) else data
