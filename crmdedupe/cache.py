"""
Per-run cache of contact attribute snapshots.

Only the orchestrator's load path fills it. Anything that writes to a
contact must call `invalidate` for that contact before the next read.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from .interfaces import ContactStore
from .logger import get_logger

logger = get_logger()

MANDATORY_FIELDS = {"is_deleted", "contact_type"}


class ContactCache:
    """Maps contact ID to the last loaded snapshot of the required fields."""

    def __init__(self, store: ContactStore, fields: Optional[Iterable[str]] = None):
        self.store = store
        self.fields: Set[str] = set(MANDATORY_FIELDS) | set(fields or ())
        self._contacts: Dict[int, Dict[str, Any]] = {}

    def __contains__(self, contact_id: int) -> bool:
        return contact_id in self._contacts

    def __len__(self) -> int:
        return len(self._contacts)

    def load(self, contact_ids: Iterable[int]) -> List[int]:
        """
        Fetch every not-yet-cached contact in one batched read.

        Returns:
            IDs that were requested from the store, in first-seen order.
            Already cached IDs are skipped without a read.
        """
        to_load = []
        for contact_id in contact_ids:
            if contact_id not in self._contacts and contact_id not in to_load:
                to_load.append(contact_id)

        if to_load:
            snapshots = self.store.read(to_load, sorted(self.fields))
            self._contacts.update(snapshots)
            missing = [c for c in to_load if c not in snapshots]
            if missing:
                logger.warning("Contacts not found in store", contact_ids=missing)

        return to_load

    def get(self, contact_id: int) -> Optional[Dict[str, Any]]:
        """Snapshot of the contact, loading it first if needed. None if it doesn't exist."""
        if contact_id not in self._contacts:
            self.load([contact_id])
        return self._contacts.get(contact_id)

    def invalidate(self, contact_id: int) -> None:
        self._contacts.pop(contact_id, None)

    def clear(self) -> None:
        self._contacts.clear()
