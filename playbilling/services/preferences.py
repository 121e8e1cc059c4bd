"""
Preference Stores - Durable string maps backing the ownership caches.

Every write is committed before the call returns; there is no write-behind.
"""

from typing import Protocol

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from playbilling.db.models import Preference
from playbilling.db.session import get_session_factory
from playbilling.exceptions import StorageError

logger = get_logger(__name__)


class PreferenceStore(Protocol):
    """Durable key -> string map."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the value could not be persisted
        """
        ...

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...


class MemoryPreferenceStore:
    """Process-local store, for tests and hosts without durable storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class SqlPreferenceStore:
    """
    Preference store persisted through SQLAlchemy.

    Each mutation runs in its own transaction and is committed before
    returning, so a crash can never leave an acknowledged write unpersisted.
    """

    def __init__(self, engine: Engine) -> None:
        self._session_factory = get_session_factory(engine)

    def get(self, key: str) -> str | None:
        try:
            with self._session_factory() as session:
                return session.scalar(select(Preference.value).where(Preference.key == key))
        except SQLAlchemyError as exc:
            logger.error("preference_read_failed", key=key, error=str(exc))
            raise StorageError(key, str(exc)) from exc

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.merge(Preference(key=key, value=value))
        except SQLAlchemyError as exc:
            logger.error("preference_write_failed", key=key, error=str(exc))
            raise StorageError(key, str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(delete(Preference).where(Preference.key == key))
        except SQLAlchemyError as exc:
            logger.error("preference_delete_failed", key=key, error=str(exc))
            raise StorageError(key, str(exc)) from exc
