"""
SQL-backed contact store.

Implements the ContactStore contract on top of the SQLAlchemy schema in
database.py, including a reference merge primitive with the same safe/force
semantics as the CRM's native merge.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Collection, Dict, List

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .database import Contact, LocationType, DETAIL_MODELS
from .errors import StoreError
from .interfaces import MERGE_MODES
from .logger import get_logger

logger = get_logger()

CONTACT_FIELDS = [column.name for column in Contact.__table__.columns]

# Attributes the merge primitive carries over and checks for conflicts.
# display_name is derived from the name fields, so it never conflicts on its own.
MERGE_FIELDS = [
    f for f in CONTACT_FIELDS
    if f not in ("id", "contact_type", "is_deleted", "display_name")
]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def diff_contacts(main: Contact, other: Contact) -> Dict[str, Dict[str, Any]]:
    """Attributes set on both contacts with different values."""
    changed = {}
    for f in MERGE_FIELDS:
        mv = getattr(main, f)
        ov = getattr(other, f)
        if _is_empty(mv) or _is_empty(ov):
            continue
        if mv != ov:
            changed[f] = {"main": mv, "other": ov}
    return changed


class SqlContactStore:
    """ContactStore over a SQLite database created with init_database()."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._engine = create_engine(f"sqlite:///{db_path}")
        self._session_factory = sessionmaker(bind=self._engine)

    @contextmanager
    def _session(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _detail_model(self, entity: str):
        model = DETAIL_MODELS.get(entity)
        if model is None:
            raise StoreError(f"Unknown detail entity '{entity}'")
        return model

    def read(self, ids: Collection[int], fields: Collection[str]) -> Dict[int, Dict[str, Any]]:
        unknown = set(fields) - set(CONTACT_FIELDS)
        if unknown:
            raise StoreError(f"Unknown contact field(s): {', '.join(sorted(unknown))}")
        if not ids:
            return {}

        with self._session() as session:
            rows = session.query(Contact).filter(Contact.id.in_(list(ids))).all()
            return {
                row.id: {"id": row.id, **{f: getattr(row, f) for f in fields}}
                for row in rows
            }

    def update(self, contact_id: int, field: str, value: Any) -> bool:
        if field not in CONTACT_FIELDS or field == "id":
            raise StoreError(f"Cannot update contact field '{field}'")

        with self._session() as session:
            contact = session.get(Contact, contact_id)
            if contact is None:
                logger.warning("Update of missing contact", contact_id=contact_id, field=field)
                return False
            setattr(contact, field, value)
        return True

    def merge_contacts(self, keep_id: int, remove_id: int, mode: str = "safe") -> bool:
        """
        Merge `remove_id` into `keep_id` in a single transaction.

        Safe mode refuses (returns False, changes nothing) when the contact
        types differ or an attribute is set on both sides with different
        values. Otherwise main keeps its values, empty ones are filled from
        the other contact, all details are re-owned by main and the other
        contact is flagged deleted.

        Raises:
            StoreError: unknown mode, same contact twice, or a contact is
                missing or already deleted
        """
        if mode not in MERGE_MODES:
            raise StoreError(f"Unknown merge mode '{mode}'")
        if keep_id == remove_id:
            raise StoreError(f"Cannot merge contact [{keep_id}] into itself")

        with self._session() as session:
            main = session.get(Contact, keep_id)
            other = session.get(Contact, remove_id)
            for contact_id, contact in ((keep_id, main), (remove_id, other)):
                if contact is None:
                    raise StoreError(f"Contact [{contact_id}] not found")
                if contact.is_deleted:
                    raise StoreError(f"Contact [{contact_id}] is deleted")

            if mode == "safe":
                conflicts = diff_contacts(main, other)
                if main.contact_type != other.contact_type:
                    conflicts["contact_type"] = {"main": main.contact_type, "other": other.contact_type}
                if conflicts:
                    logger.info(
                        "Safe merge refused",
                        keep_id=keep_id,
                        remove_id=remove_id,
                        conflicts=sorted(conflicts),
                    )
                    return False

            for f in MERGE_FIELDS:
                if _is_empty(getattr(main, f)) and not _is_empty(getattr(other, f)):
                    setattr(main, f, getattr(other, f))

            for model in DETAIL_MODELS.values():
                has_primary = session.query(model).filter_by(contact_id=keep_id, is_primary=True).count() > 0
                changes = {"contact_id": keep_id}
                if has_primary:
                    changes["is_primary"] = False
                session.query(model).filter_by(contact_id=remove_id).update(changes)

            other.is_deleted = True

        logger.debug("Contacts merged", keep_id=keep_id, remove_id=remove_id, mode=mode)
        return True

    def get_details(
        self, entity: str, contact_ids: Collection[int], fields: Collection[str]
    ) -> List[Dict[str, Any]]:
        model = self._detail_model(entity)
        columns = {column.name for column in model.__table__.columns}
        unknown = set(fields) - columns
        if unknown:
            raise StoreError(f"Unknown {entity} field(s): {', '.join(sorted(unknown))}")
        if not contact_ids:
            return []

        with self._session() as session:
            rows = (
                session.query(model)
                .filter(model.contact_id.in_(list(contact_ids)))
                .order_by(model.id)
                .all()
            )
            return [
                {"id": row.id, "contact_id": row.contact_id, **{f: getattr(row, f) for f in fields}}
                for row in rows
            ]

    def move_detail(self, entity: str, detail_id: int, contact_id: int) -> None:
        model = self._detail_model(entity)
        with self._session() as session:
            detail = session.get(model, detail_id)
            if detail is None:
                raise StoreError(f"{entity} [{detail_id}] not found")
            if detail.is_primary:
                target_has_primary = (
                    session.query(model).filter_by(contact_id=contact_id, is_primary=True).count() > 0
                )
                if target_has_primary:
                    detail.is_primary = False
            detail.contact_id = contact_id

    def delete_detail(self, entity: str, detail_id: int) -> None:
        model = self._detail_model(entity)
        with self._session() as session:
            detail = session.get(model, detail_id)
            if detail is None:
                raise StoreError(f"{entity} [{detail_id}] not found")
            session.delete(detail)

    def location_types(self) -> Dict[int, str]:
        with self._session() as session:
            return {lt.id: lt.display_name or lt.name for lt in session.query(LocationType).all()}

    def close(self) -> None:
        self._engine.dispose()
