from typing import Any, Collection, Dict, List, Protocol

MERGE_MODES = ("safe", "force")


class ContactStore(Protocol):
    """Narrow view of the CRM the merge core is allowed to use."""

    def read(self, ids: Collection[int], fields: Collection[str]) -> Dict[int, Dict[str, Any]]:
        """Snapshot of the requested fields (plus `id`) for every existing contact in `ids`."""
        ...

    def update(self, contact_id: int, field: str, value: Any) -> bool:
        """Write one attribute of a contact. False if the contact doesn't exist."""
        ...

    def merge_contacts(self, keep_id: int, remove_id: int, mode: str = "safe") -> bool:
        """Atomically merge `remove_id` into `keep_id`. False if the CRM refused."""
        ...

    def get_details(
        self, entity: str, contact_ids: Collection[int], fields: Collection[str]
    ) -> List[Dict[str, Any]]:
        """Detail records (`Email`, `Phone`, `Im`) owned by the given contacts, ordered by id."""
        ...

    def move_detail(self, entity: str, detail_id: int, contact_id: int) -> None:
        """Re-own a detail record by another contact."""
        ...

    def delete_detail(self, entity: str, detail_id: int) -> None:
        """Delete a detail record."""
        ...

    def location_types(self) -> Dict[int, str]:
        """Location type labels by ID."""
        ...
