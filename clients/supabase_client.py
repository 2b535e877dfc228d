import os
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from supabase import acreate_client, AsyncClient

from utils.exceptions import StorageError

load_dotenv()

logger = logging.getLogger(__name__)


async def create_supabase(url: Optional[str] = None, key: Optional[str] = None) -> AsyncClient:
    """Build the async Supabase client from arguments or SUPABASE_URL / SUPABASE_KEY."""
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return await acreate_client(url, key)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return _serialize_for_supabase(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def _serialize_for_supabase(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively convert enums → .value, datetimes → .isoformat() for Supabase writes."""
    return {key: _serialize_value(value) for key, value in data.items()}


class SupabaseDocumentStore:
    """
    Generic document-store operations over Supabase tables.

    Every method raises StorageError on failure; callers decide whether a
    failure is fatal.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(cls, url: Optional[str] = None, key: Optional[str] = None) -> "SupabaseDocumentStore":
        return cls(await create_supabase(url, key))

    async def insert(self, table: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it (including its generated id)."""
        try:
            response = await self.client.table(table).insert(_serialize_for_supabase(document)).execute()
        except Exception as e:
            raise StorageError(f"Insert into {table} failed: {e}", context={"table": table}) from e
        if not response.data or "id" not in response.data[0]:
            raise StorageError(f"Supabase insert failed or id not returned: {response}", context={"table": table})
        return response.data[0]

    async def insert_many(self, table: str, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert all rows in a single request."""
        if not documents:
            return []
        rows = [_serialize_for_supabase(doc) for doc in documents]
        try:
            response = await self.client.table(table).insert(rows).execute()
        except Exception as e:
            raise StorageError(
                f"Bulk insert into {table} failed: {e}",
                context={"table": table, "count": len(rows)},
            ) from e
        return response.data or []

    async def update_by_id(self, table: str, doc_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.table(table) \
                .update(_serialize_for_supabase(fields)) \
                .eq("id", doc_id) \
                .execute()
        except Exception as e:
            raise StorageError(f"Update of {table}/{doc_id} failed: {e}", context={"table": table, "id": doc_id}) from e
        return response.data[0] if response.data else None

    async def get_by_id(self, table: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_one(table, {"id": doc_id})

    async def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.find(table, filters, limit=1)
        return rows[0] if rows else None

    async def find(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Select rows matching all equality filters."""
        try:
            query = self.client.table(table).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, _serialize_value(value))
            if order_by:
                query = query.order(order_by, desc=desc)
            if limit is not None:
                query = query.range(offset, offset + limit - 1)
            response = await query.execute()
        except Exception as e:
            raise StorageError(f"Query on {table} failed: {e}", context={"table": table}) from e
        return response.data or []

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            query = self.client.table(table).select("id", count="exact")
            for column, value in (filters or {}).items():
                query = query.eq(column, _serialize_value(value))
            response = await query.execute()
        except Exception as e:
            raise StorageError(f"Count on {table} failed: {e}", context={"table": table}) from e
        return response.count or 0
