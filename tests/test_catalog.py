from zodb_filevault.interfaces import IFileCatalog
from zodb_filevault.interfaces import IQuotaStore
from zope.interface.verify import verifyObject

import pytest


@pytest.fixture
def catalog(session):
    return session.catalog


def _create(catalog, owner_id="u1", key="uploads/u1/a.txt", **kw):
    values = dict(
        owner_id=owner_id,
        key=key,
        provider_id="aws",
        original_name="a.txt",
        size=10,
        content_type="text/plain",
    )
    values.update(kw)
    return catalog.create(**values)


class TestFileCatalog:
    def test_interface(self, catalog):
        assert verifyObject(IFileCatalog, catalog)

    def test_create_and_find(self, catalog, clock):
        record = _create(catalog, location="fake://aws/uploads/u1/a.txt")

        found = catalog.find_by_id(record.file_id)
        assert found is record
        assert found.owner_id == "u1"
        assert found.provider_id == "aws"
        assert found.key == "uploads/u1/a.txt"
        assert found.size == 10
        assert found.created_at == clock()
        assert found.location == "fake://aws/uploads/u1/a.txt"

    def test_ids_are_unique(self, catalog):
        assert _create(catalog).file_id != _create(catalog).file_id

    def test_find_missing(self, catalog):
        assert catalog.find_by_id("nope") is None

    def test_list_by_owner_newest_first(self, catalog, clock):
        first = _create(catalog, key="k1")
        clock.advance(minutes=1)
        second = _create(catalog, key="k2")
        clock.advance(minutes=1)
        third = _create(catalog, key="k3")
        _create(catalog, owner_id="u2", key="other")

        assert catalog.list_by_owner("u1") == [third, second, first]

    def test_list_unknown_owner(self, catalog):
        assert catalog.list_by_owner("nobody") == []

    def test_delete(self, catalog):
        keep = _create(catalog, key="k1")
        gone = _create(catalog, key="k2")

        catalog.delete(gone.file_id)

        assert catalog.find_by_id(gone.file_id) is None
        assert catalog.list_by_owner("u1") == [keep]
        assert len(catalog) == 1

    def test_delete_missing_is_noop(self, catalog):
        catalog.delete("nope")

    def test_records_survive_commit(self, session, vault):
        with session.transaction_manager:
            record = _create(session.catalog)

        with vault.session() as other:
            found = other.catalog.find_by_id(record.file_id)
            assert found.original_name == "a.txt"


class TestUserStore:
    def test_interface(self, session):
        assert verifyObject(IQuotaStore, session.users)

    def test_find_quota_state_missing(self, session):
        assert session.users.find_quota_state("nobody") is None

    def test_list_daily_entries_joins_username(self, session, clock):
        session.ledger.register_user("u1", "alice")
        day = clock().date()
        with session.transaction_manager:
            assert session.users.upsert_daily_entry("u1", day, 40) == 40
            assert session.users.upsert_daily_entry("u1", day, 2) == 42

        assert session.users.list_daily_entries(day) == [("alice", 42)]

    def test_get_user_is_admin_flag(self, session):
        session.ledger.register_user("u1", "root", is_admin=True)
        assert session.users.get_user("u1").is_admin is True
