"""
Tests for the contact cache.
"""

from crmdedupe.cache import ContactCache


class TestContactCacheLoad:
    """Test batched loading."""

    def test_load_fetches_in_one_read(self, counting_store, add_contact):
        """All missing contacts should be fetched with a single read."""
        ids = [add_contact(display_name=f"c{i}") for i in range(3)]
        cache = ContactCache(counting_store, ["display_name"])

        loaded = cache.load(ids)

        assert loaded == ids
        assert counting_store.reads == [sorted(ids)]
        assert all(contact_id in cache for contact_id in ids)

    def test_load_cached_contacts_performs_no_read(self, counting_store, add_contact):
        """Loading contacts that are already cached should not hit the store."""
        ids = [add_contact(), add_contact()]
        cache = ContactCache(counting_store)
        cache.load(ids)

        loaded = cache.load(ids)

        assert loaded == []
        assert len(counting_store.reads) == 1

    def test_load_only_fetches_missing(self, counting_store, add_contact):
        """Partially cached batches only read the missing contacts."""
        first, second = add_contact(), add_contact()
        cache = ContactCache(counting_store)
        cache.load([first])

        loaded = cache.load([first, second])

        assert loaded == [second]
        assert counting_store.reads[-1] == [second]

    def test_load_deduplicates_ids(self, counting_store, add_contact):
        contact_id = add_contact()
        cache = ContactCache(counting_store)

        assert cache.load([contact_id, contact_id]) == [contact_id]

    def test_snapshot_contains_mandatory_fields(self, store, add_contact):
        """is_deleted and contact_type are always loaded."""
        contact_id = add_contact(contact_type="Organization", external_identifier="X-1")
        cache = ContactCache(store, ["external_identifier"])

        contact = cache.get(contact_id)

        assert contact["id"] == contact_id
        assert contact["contact_type"] == "Organization"
        assert contact["is_deleted"] is False
        assert contact["external_identifier"] == "X-1"
        assert "display_name" not in contact


class TestContactCacheGet:
    """Test transparent loading and invalidation."""

    def test_get_loads_on_miss(self, counting_store, add_contact):
        contact_id = add_contact(display_name="Ann")
        cache = ContactCache(counting_store, ["display_name"])

        assert cache.get(contact_id)["display_name"] == "Ann"
        assert counting_store.reads == [[contact_id]]

    def test_get_missing_contact_returns_none(self, store):
        cache = ContactCache(store)
        assert cache.get(4711) is None

    def test_invalidate_forces_reload(self, counting_store, store, add_contact):
        """After invalidation the next read should see the stored value."""
        contact_id = add_contact(external_identifier="old")
        cache = ContactCache(counting_store, ["external_identifier"])
        cache.get(contact_id)

        store.update(contact_id, "external_identifier", "new")
        cache.invalidate(contact_id)

        assert contact_id not in cache
        assert cache.get(contact_id)["external_identifier"] == "new"
        assert len(counting_store.reads) == 2

    def test_invalidate_absent_is_noop(self, store):
        cache = ContactCache(store)
        cache.invalidate(99)
        assert len(cache) == 0
