import asyncio
import logging
from typing import Dict, List, Tuple

from pydantic import ValidationError

from app.database.document_store import DocumentStore
from app.modules.automation.schemas import AutomationDocument, Suspension

logger = logging.getLogger(__name__)


class AutomationRepository:
    """Reads and writes one AutomationDocument per group."""

    def __init__(self, store: DocumentStore, collection: str = "group_automation"):
        self.store = store
        self.collection = collection

    def get(self, group_id: str) -> AutomationDocument:
        data = self.store.get(self.collection, group_id)
        if data is None:
            return AutomationDocument()
        return AutomationDocument.model_validate(data)

    def save(self, group_id: str, document: AutomationDocument) -> None:
        self.store.set(self.collection, group_id, document.to_store())

    def update_suspensions(self, group_id: str, suspensions: List[Suspension]) -> None:
        self.store.update(self.collection, group_id, {
            "suspensions": [s.model_dump(by_alias=True) for s in suspensions]
        })

    def list(self) -> List[Tuple[str, AutomationDocument]]:
        documents = []
        for group_id, data in self.store.list(self.collection):
            try:
                documents.append((group_id, AutomationDocument.model_validate(data)))
            except ValidationError as e:
                logger.warning(f"Skipping malformed automation document for group {group_id}: {e}")
        return documents


class GroupLocks:
    """Per-group asyncio locks serializing read-modify-write of a group's document."""

    def __init__(self):
        # Never evicted: one lock per group id this process has touched. Group ids
        # come from a bounded set of managed groups.
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_group(self, group_id: str) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = self._locks[group_id] = asyncio.Lock()
        return lock
