"""
Pytest configuration and shared fixtures.
"""

import pytest
from pathlib import Path
from typing import Any, Dict, List

from crmdedupe.database import Contact, DETAIL_MODELS, init_database, get_session
from crmdedupe.errors import StoreError
from crmdedupe.storage import SqlContactStore


class CountingStore:
    """Wraps a store and records every read and merge call."""

    def __init__(self, store):
        self.store = store
        self.reads: List[List[int]] = []
        self.merges: List[tuple] = []

    def read(self, ids, fields):
        self.reads.append(sorted(ids))
        return self.store.read(ids, fields)

    def merge_contacts(self, keep_id, remove_id, mode="safe"):
        self.merges.append((keep_id, remove_id, mode))
        return self.store.merge_contacts(keep_id, remove_id, mode)

    def __getattr__(self, name):
        return getattr(self.store, name)


class FailingMergeStore(CountingStore):
    """Store whose merge primitive blows up for selected contacts."""

    def __init__(self, store, failing_ids):
        super().__init__(store)
        self.failing_ids = set(failing_ids)

    def merge_contacts(self, keep_id, remove_id, mode="safe"):
        self.merges.append((keep_id, remove_id, mode))
        if remove_id in self.failing_ids:
            raise RuntimeError("deadlock detected")
        return self.store.merge_contacts(keep_id, remove_id, mode)


class FailingReadStore(CountingStore):
    """Store whose reads time out whenever selected contacts are requested."""

    def __init__(self, store, failing_ids):
        super().__init__(store)
        self.failing_ids = set(failing_ids)

    def read(self, ids, fields):
        self.reads.append(sorted(ids))
        if self.failing_ids & set(ids):
            raise StoreError("Contact.get failed: Failed after 4 attempts: timeout")
        return self.store.read(ids, fields)


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized SQLite contact store."""
    path = tmp_path / "crm.db"
    init_database(path)
    return path


@pytest.fixture
def store(db_path):
    s = SqlContactStore(db_path)
    yield s
    s.close()


@pytest.fixture
def counting_store(store) -> CountingStore:
    return CountingStore(store)


@pytest.fixture
def merge_log(tmp_path) -> Path:
    return tmp_path / "merge.log"


@pytest.fixture
def add_contact(db_path):
    """Insert a contact and return its ID."""

    def _add(**attrs: Any) -> int:
        attrs.setdefault("contact_type", "Individual")
        session = get_session(db_path)
        try:
            contact = Contact(**attrs)
            session.add(contact)
            session.commit()
            return contact.id
        finally:
            session.close()

    return _add


@pytest.fixture
def add_detail(db_path):
    """Insert a detail record (Email, Phone, Im) and return its ID."""

    def _add(entity: str, contact_id: int, **attrs: Any) -> int:
        session = get_session(db_path)
        try:
            detail = DETAIL_MODELS[entity](contact_id=contact_id, **attrs)
            session.add(detail)
            session.commit()
            return detail.id
        finally:
            session.close()

    return _add


@pytest.fixture
def contact_row(db_path):
    """Read a contact straight from the database, bypassing any cache."""

    def _get(contact_id: int) -> Dict[str, Any]:
        session = get_session(db_path)
        try:
            contact = session.get(Contact, contact_id)
            return {column.name: getattr(contact, column.name) for column in Contact.__table__.columns}
        finally:
            session.close()

    return _get


@pytest.fixture
def details_of(db_path):
    """List (id, contact_id) of all records of a detail entity, ordered by id."""

    def _list(entity: str, contact_id: int) -> List[Dict[str, Any]]:
        model = DETAIL_MODELS[entity]
        session = get_session(db_path)
        try:
            rows = session.query(model).filter_by(contact_id=contact_id).order_by(model.id).all()
            return [
                {column.name: getattr(row, column.name) for column in model.__table__.columns}
                for row in rows
            ]
        finally:
            session.close()

    return _list
