"""
Durable storage for smart album definitions.

The store keeps every definition in memory, keyed by id, plus a secondary
index from lower-cased name to id. Reads are served from memory; every save
or delete is written through to the database in a single transaction before
the in-memory tables change, so callers never observe a save that did not
persist.

Name collisions: the definition that most recently *claimed* a name owns it.
Every explicit save claims the name. Recording run statistics through
``record_run`` does not, and it only touches the statistics fields, so a
sweep never undoes a redefinition made while it was running.

Concurrency: any number of readers may proceed together; a writer excludes
both readers and other writers. The scheduler and tool calls share one
store instance.
"""

import logging
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DefinitionNotFound, PersistenceFailed
from ..models.definition import SearchDefinition, utcnow
from .schema import SmartAlbumRecord
from .session import DatabaseManager

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _name_key(name: str) -> str:
    return name.strip().lower()


def _naive(value: datetime) -> datetime:
    # SQLite DateTime columns are naive; every timestamp here is UTC
    return value.replace(tzinfo=None)


class DefinitionStore:
    """Keyed, concurrency-safe storage for ``SearchDefinition`` records."""

    def __init__(self, db: DatabaseManager):
        self._db = db
        self._lock = ReadWriteLock()
        self._definitions: dict[str, SearchDefinition] = {}
        self._claims: dict[str, datetime] = {}
        self._by_name: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        """Populate the in-memory tables from the database."""
        self._db.init_database()

        with self._lock.write_locked():
            try:
                with self._db.session_scope() as session:
                    # Oldest claim first so the latest claimant ends up in the index
                    rows = session.execute(
                        select(SmartAlbumRecord).order_by(SmartAlbumRecord.name_claimed_at)
                    ).scalars().all()
                    loaded = [(row.payload, row.name_claimed_at) for row in rows]
            except SQLAlchemyError as e:
                raise PersistenceFailed(f"failed to load smart album definitions: {e!s}") from e

            for payload, claimed_at in loaded:
                definition = SearchDefinition.model_validate_json(payload)
                self._definitions[definition.id] = definition
                self._claims[definition.id] = claimed_at
                if definition.name:
                    self._by_name[_name_key(definition.name)] = definition.id

        logger.info("Loaded %d smart album definitions", len(self._definitions))

    # =========================================================================
    # Writes
    # =========================================================================

    def save(self, definition: SearchDefinition, *, claim_name: bool = True) -> SearchDefinition:
        """
        Persist a definition, assigning an id and timestamps as needed.

        Args:
            definition: The definition to store, replacing any record with its id
            claim_name: Take over the name from any other definition using it.
                A new or renamed definition always claims its name.

        Returns:
            The stored definition, with ``id``, ``created_at`` and ``updated_at`` set

        Raises:
            InvalidDefinition: If the definition fails validation
            PersistenceFailed: If the database write failed; nothing changed
        """
        definition.validate_definition()

        with self._lock.write_locked():
            return self._save_locked(definition, claim_name)

    def record_run(self, run: SearchDefinition) -> SearchDefinition:
        """
        Copy the run statistics of ``run`` onto the stored record with its id.

        Every other field keeps its stored value, and the name is not
        re-claimed.

        Raises:
            DefinitionNotFound: If the definition was deleted after the run read it
            PersistenceFailed: If the database write failed; nothing changed
        """
        with self._lock.write_locked():
            current = self._definitions.get(run.id) if run.id else None
            if current is None:
                raise DefinitionNotFound(f"smart album with id {run.id} was deleted")
            return self._save_locked(current.with_run_statistics(run), claim_name=False)

    def _save_locked(self, definition: SearchDefinition, claim_name: bool) -> SearchDefinition:
        now = utcnow()
        stored = definition.model_copy(
            update={
                "id": definition.id or str(uuid.uuid4()),
                "created_at": definition.created_at or now,
                "updated_at": now,
            }
        )
        key = _name_key(stored.name)

        previous = self._definitions.get(stored.id)
        renamed = previous is None or _name_key(previous.name) != key
        claims_name = bool(key) and (claim_name or renamed or key not in self._by_name)
        claimed_at = _naive(now) if claims_name else self._claims.get(stored.id, _naive(now))

        self._persist(stored, claimed_at)

        self._definitions[stored.id] = stored
        self._claims[stored.id] = claimed_at

        if previous and previous.name and renamed:
            old_key = _name_key(previous.name)
            if self._by_name.get(old_key) == stored.id:
                del self._by_name[old_key]
                self._reindex_name(old_key)

        if claims_name:
            displaced = self._by_name.get(key)
            if displaced and displaced != stored.id:
                logger.info(
                    "Smart album name '%s' now refers to %s (was %s)",
                    stored.name,
                    stored.id,
                    displaced,
                )
            self._by_name[key] = stored.id

        return stored

    def delete(self, definition_id: str) -> SearchDefinition:
        """
        Remove a definition by id.

        Raises:
            DefinitionNotFound: If no definition has this id
            PersistenceFailed: If the database delete failed; nothing changed
        """
        with self._lock.write_locked():
            existing = self._definitions.get(definition_id)
            if existing is None:
                raise DefinitionNotFound(f"smart album with id {definition_id} not found")

            try:
                with self._db.session_scope() as session:
                    session.execute(
                        delete(SmartAlbumRecord).where(SmartAlbumRecord.id == definition_id)
                    )
            except SQLAlchemyError as e:
                raise PersistenceFailed(f"failed to delete smart album: {e!s}") from e

            del self._definitions[definition_id]
            self._claims.pop(definition_id, None)

            key = _name_key(existing.name)
            if key and self._by_name.get(key) == definition_id:
                del self._by_name[key]
                self._reindex_name(key)

        return existing

    def _persist(self, definition: SearchDefinition, claimed_at: datetime) -> None:
        """Write one definition in its own transaction. Caller holds the write lock."""
        record = SmartAlbumRecord(
            id=definition.id,
            name=definition.name,
            name_key=_name_key(definition.name),
            collection_id=definition.collection_id,
            payload=definition.model_dump_json(by_alias=True),
            created_at=_naive(definition.created_at),
            updated_at=_naive(definition.updated_at),
            name_claimed_at=claimed_at,
        )
        try:
            with self._db.session_scope() as session:
                session.merge(record)
        except SQLAlchemyError as e:
            raise PersistenceFailed(f"failed to persist smart album: {e!s}") from e

    def _reindex_name(self, key: str) -> None:
        """Hand a freed name to the remaining definition that claimed it last."""
        candidates = [
            d.id for d in self._definitions.values() if d.name and _name_key(d.name) == key
        ]
        if candidates:
            self._by_name[key] = max(candidates, key=lambda i: self._claims[i])

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, definition_id: str) -> SearchDefinition:
        """Raises DefinitionNotFound for unknown ids."""
        with self._lock.read_locked():
            definition = self._definitions.get(definition_id)
        if definition is None:
            raise DefinitionNotFound(f"smart album with id {definition_id} not found")
        return definition

    def get_by_name(self, name: str) -> SearchDefinition:
        """Case-insensitive lookup. Raises DefinitionNotFound for unknown names."""
        with self._lock.read_locked():
            definition_id = self._by_name.get(_name_key(name)) if name else None
            definition = self._definitions.get(definition_id) if definition_id else None
        if definition is None:
            raise DefinitionNotFound(f"smart album named '{name}' not found")
        return definition

    def find(
        self, definition_id: str | None = None, name: str | None = None
    ) -> SearchDefinition | None:
        """Lookup by id, else by name, returning None instead of raising."""
        try:
            if definition_id:
                return self.get_by_id(definition_id)
            if name:
                return self.get_by_name(name)
        except DefinitionNotFound:
            return None
        return None

    def list(self) -> list[SearchDefinition]:
        """All definitions sorted by name (case-insensitive), then id."""
        with self._lock.read_locked():
            definitions = [*self._definitions.values()]
        return sorted(definitions, key=lambda d: (_name_key(d.name), d.id))

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._definitions)

    def close(self) -> None:
        """Release the database connection."""
        self._db.close()
