"""
Document store used for per-group documents (automation, audit logs).

Each collection maps to a Supabase table with the shape:

- id: text (primary key) - document id, e.g. the Roblox group id
- data: jsonb (not null) - the whole document
- updated_at: timestamp (default: now())

Documents are read and written whole; there are no cross-document
transactions. InMemoryDocumentStore backs local development and tests.
"""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client

from app.core.errors import StoreError

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        """Merge top-level keys into the document, creating it if missing."""

    @abstractmethod
    def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        ...


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.supabase.table(collection)\
                .select("data")\
                .eq("id", doc_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error reading {collection}/{doc_id}: {str(e)}")
            raise StoreError(f"Failed to read {collection}/{doc_id}", collection, doc_id) from e
        # maybe_single() yields no response at all when the row is missing
        if result is None or not result.data:
            return None
        return result.data.get("data") or {}

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self.supabase.table(collection).upsert({
                "id": doc_id,
                "data": data,
                "updated_at": datetime.now(timezone.utc).isoformat()
            }).execute()
        except Exception as e:
            logger.error(f"Error writing {collection}/{doc_id}: {str(e)}")
            raise StoreError(f"Failed to write {collection}/{doc_id}", collection, doc_id) from e

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        # PostgREST cannot merge into jsonb, so merge top-level keys client side
        current = self.get(collection, doc_id) or {}
        current.update(partial)
        self.set(collection, doc_id, current)

    def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        try:
            result = self.supabase.table(collection)\
                .select("id, data")\
                .execute()
        except Exception as e:
            logger.error(f"Error listing {collection}: {str(e)}")
            raise StoreError(f"Failed to list {collection}", collection) from e
        return [(row["id"], row.get("data") or {}) for row in (result.data or [])]


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            merged = docs.get(doc_id, {})
            merged.update(copy.deepcopy(partial))
            docs[doc_id] = merged

    def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [(doc_id, copy.deepcopy(doc)) for doc_id, doc in self._collections.get(collection, {}).items()]
