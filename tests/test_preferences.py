"""
Tests for preference stores.
"""

import pytest
from sqlalchemy.exc import OperationalError

from playbilling.db.session import create_preferences_engine
from playbilling.exceptions import StorageError
from playbilling.services.preferences import MemoryPreferenceStore, SqlPreferenceStore


@pytest.fixture
def sql_store():
    """SQL store over an in-memory SQLite database."""
    engine = create_preferences_engine("sqlite://")
    yield SqlPreferenceStore(engine)
    engine.dispose()


class TestMemoryPreferenceStore:
    """Tests for MemoryPreferenceStore."""

    def test_get_missing_returns_none(self):
        """Test that absent keys read as None."""
        assert MemoryPreferenceStore().get("missing") is None

    def test_set_and_get(self):
        """Test a simple write and read."""
        store = MemoryPreferenceStore()
        store.set("k", "v")

        assert store.get("k") == "v"

    def test_initial_values_are_copied(self):
        """Test that the initial mapping is not shared."""
        initial = {"k": "v"}
        store = MemoryPreferenceStore(initial)
        store.set("k", "changed")

        assert initial["k"] == "v"

    def test_delete_missing_is_ignored(self):
        """Test that deleting an absent key does nothing."""
        store = MemoryPreferenceStore()
        store.delete("missing")

        assert store.get("missing") is None


class TestSqlPreferenceStore:
    """Tests for SqlPreferenceStore."""

    def test_get_missing_returns_none(self, sql_store):
        """Test that absent keys read as None."""
        assert sql_store.get("missing") is None

    def test_set_and_get(self, sql_store):
        """Test a write is visible to later reads."""
        sql_store.set("com.example.products.cache.v2_4", '{"gold": "tok"}')

        assert sql_store.get("com.example.products.cache.v2_4") == '{"gold": "tok"}'

    def test_set_overwrites(self, sql_store):
        """Test that set replaces the previous value."""
        sql_store.set("k", "first")
        sql_store.set("k", "second")

        assert sql_store.get("k") == "second"

    def test_delete(self, sql_store):
        """Test that deleted keys read as None."""
        sql_store.set("k", "v")
        sql_store.delete("k")

        assert sql_store.get("k") is None

    def test_values_survive_new_store(self, tmp_path):
        """Test durability across store instances on the same database file."""
        url = f"sqlite:///{tmp_path / 'prefs.db'}"
        first = create_preferences_engine(url)
        SqlPreferenceStore(first).set("k", "v")
        first.dispose()

        second = create_preferences_engine(url)
        try:
            assert SqlPreferenceStore(second).get("k") == "v"
        finally:
            second.dispose()

    def test_database_failure_raises_storage_error(self, sql_store, monkeypatch):
        """Test that SQLAlchemy errors surface as StorageError."""

        def broken_factory():
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(sql_store, "_session_factory", broken_factory)

        with pytest.raises(StorageError) as exc_info:
            sql_store.get("k")

        assert exc_info.value.key == "k"
