"""SessionManager: named, persisted conversation trees and the active one.

The active tree is edited through a TreeStore whose change hook saves the
active session after every mutation. Writes to the store are best-effort:
a PersistenceError is logged and the in-memory state stays authoritative
until the next successful write. A session index that cannot be read is
never overwritten: entries that fail to parse are carried along unchanged,
and an unparseable index is copied aside before it is replaced.
"""

import logging
from collections.abc import Callable

from pydantic import ValidationError

from inferflow.db.connection import Database, PersistenceError
from inferflow.db.schema import (
    CURRENT_SESSION_KEY,
    LEGACY_TREE_KEY,
    SESSIONS_BACKUP_KEY,
    SESSIONS_KEY,
)
from inferflow.export.service import export_session_document
from inferflow.importer.service import parse_session_document
from inferflow.models import ConversationTree, Session
from inferflow.sessions.migration import migrate_legacy_tree, migrate_session
from inferflow.sessions.serialization import (
    RecordFormatError,
    session_from_record,
    session_to_record,
)
from inferflow.trees.store import TreeStore
from inferflow.utils.clock import format_local_datetime, generate_id, now_ms
from inferflow.utils.json import dump_json, parse_json_list

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns every session, the active session id and the active tree."""

    def __init__(
        self,
        database: Database,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._db = database
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        # Stored entries that could not be read, written back unchanged
        self._unreadable: dict[str, object] = {}
        # False while the stored index could not be read; it is never overwritten then
        self._index_loaded = False
        self._current_session_id: str | None = None
        self._store = TreeStore(on_change=self._on_tree_changed)

    # -- Read side --

    @property
    def tree(self) -> TreeStore:
        """Store for the active tree. Replaced whenever another session is activated."""
        return self._store

    @property
    def current_session_id(self) -> str | None:
        return self._current_session_id

    @property
    def sessions(self) -> dict[str, Session]:
        return dict(self._sessions)

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[Session]:
        """All sessions, most recently updated first."""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    # -- Bootstrap / teardown --

    def load(self) -> str:
        """Read persisted sessions and activate one. Returns the active session id.

        A legacy single-tree record is migrated into one new session, but only
        while no sessions exist. Activation prefers the recorded active id,
        then the most recently updated session, then a new empty session.
        """
        self._sessions = self._read_sessions()
        self._migrate_legacy()

        recorded_id = self._read(CURRENT_SESSION_KEY)
        if recorded_id and recorded_id in self._sessions:
            self._activate(recorded_id)
        elif self._sessions:
            self._activate(self.list_sessions()[0].id)
        else:
            return self.create_new_session()

        self._write(CURRENT_SESSION_KEY, self._current_session_id)
        logger.info(
            "Loaded %d sessions, active %s", len(self._sessions), self._current_session_id
        )
        return self._current_session_id

    def flush(self) -> None:
        """Best-effort save of the active session."""
        if self._current_session_id is not None:
            self.save_current_session()

    # -- Session operations --

    def save_current_session(self, name: str | None = None) -> str:
        """Upsert the active session from the active tree. Returns its id.

        Without a name the stored name is kept; a session saved for the first
        time gets a dated default name.
        """
        now = self._clock()
        session_id = self._current_session_id or generate_id("session")
        existing = self._sessions.get(session_id)

        if name:
            session_name = name
        elif existing is not None:
            session_name = existing.name
        else:
            session_name = f"Session {format_local_datetime(now)}"

        self._sessions[session_id] = Session(
            id=session_id,
            name=session_name,
            created_at=existing.created_at if existing is not None else now,
            updated_at=now,
            tree=self._store.snapshot(),
        )
        self._current_session_id = session_id
        self._persist_index()
        self._write(CURRENT_SESSION_KEY, session_id)
        return session_id

    def load_session(self, session_id: str) -> bool:
        """Make a stored session active. False if the id is unknown."""
        if session_id not in self._sessions:
            logger.warning("load_session: session %s not found", session_id)
            return False

        if (
            self._current_session_id is not None
            and self._current_session_id != session_id
            and len(self._store) > 0
        ):
            self.save_current_session()

        self._activate(session_id)
        self._write(CURRENT_SESSION_KEY, session_id)
        return True

    def create_new_session(self) -> str:
        """Save the active session if it has content, then start an empty one."""
        if self._current_session_id is not None and len(self._store) > 0:
            self.save_current_session()

        now = self._clock()
        session = Session(
            id=generate_id("session"),
            name=f"New Session {format_local_datetime(now)}",
            created_at=now,
            updated_at=now,
            tree=ConversationTree(),
        )
        self._sessions[session.id] = session
        self._activate(session.id)
        self._persist_index()
        self._write(CURRENT_SESSION_KEY, session.id)
        logger.info("Created session %s", session.id)
        return session.id

    def delete_session(self, session_id: str) -> bool:
        """Delete a session. The active one is replaced by a new session first."""
        if session_id not in self._sessions:
            logger.warning("delete_session: session %s not found", session_id)
            return False

        if session_id == self._current_session_id:
            self.create_new_session()

        del self._sessions[session_id]
        self._persist_index()
        logger.info("Deleted session %s", session_id)
        return True

    def rename_session(self, session_id: str, name: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("rename_session: session %s not found", session_id)
            return False
        self._sessions[session_id] = session.model_copy(
            update={"name": name, "updated_at": self._clock()}
        )
        self._persist_index()
        return True

    def export_session(self, session_id: str) -> str:
        """Serialized export document. Raises SessionNotFoundError for unknown ids."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return export_session_document(session, exported_at=self._clock())

    def import_session(self, text: str | bytes) -> str:
        """Register an exported session under a fresh id and return that id.

        Raises ImportFormatError before any state changes. The active session
        is not changed.
        """
        session = parse_session_document(text, now=self._clock())
        while session.id in self._sessions:
            session.id = generate_id("session")
        self._sessions[session.id] = session
        self._persist_index()
        logger.info("Imported session %s (%r)", session.id, session.name)
        return session.id

    # -- Internal --

    def _activate(self, session_id: str) -> None:
        tree = self._sessions[session_id].tree.model_copy(deep=True)
        self._store = TreeStore(tree, on_change=self._on_tree_changed)
        self._current_session_id = session_id

    def _on_tree_changed(self) -> None:
        self.save_current_session()

    def _read_sessions(self) -> dict[str, Session]:
        self._unreadable = {}
        try:
            raw = self._db.get(SESSIONS_KEY)
        except PersistenceError:
            logger.exception("Failed to read %s, leaving the stored index untouched", SESSIONS_KEY)
            self._index_loaded = False
            return {}
        self._index_loaded = True
        if raw is None:
            return {}
        pairs = parse_json_list(raw)
        if pairs is None:
            logger.warning(
                "Stored session index is not a JSON list, copying it to %s", SESSIONS_BACKUP_KEY
            )
            self._index_loaded = self._write(SESSIONS_BACKUP_KEY, raw)
            return {}

        now = self._clock()
        sessions: dict[str, Session] = {}
        malformed = 0
        for pair in pairs:
            if not isinstance(pair, list) or len(pair) != 2 or not isinstance(pair[0], str):
                malformed += 1
                continue
            key, record = pair
            try:
                session = session_from_record(record, fallback_id=key, now=now)
            except (RecordFormatError, ValidationError) as e:
                logger.warning("Unreadable session %s kept as stored: %s", key, e)
                self._unreadable[key] = record
                continue
            session.id = key
            sessions[key] = migrate_session(session)
        if malformed:
            logger.warning(
                "Skipped %d malformed session index entries, copying the index to %s",
                malformed, SESSIONS_BACKUP_KEY,
            )
            self._index_loaded = self._write(SESSIONS_BACKUP_KEY, raw)
        return sessions

    def _migrate_legacy(self) -> None:
        if not self._index_loaded:
            return
        raw = self._read(LEGACY_TREE_KEY)
        if not raw:
            return
        if self._sessions or self._unreadable:
            logger.info("Legacy tree record present but sessions exist, leaving it")
            return

        try:
            tree = migrate_legacy_tree(raw)
        except (RecordFormatError, ValidationError) as e:
            logger.error("Failed to migrate legacy tree: %s", e)
            return

        now = self._clock()
        session = Session(
            id=generate_id("session"),
            name="Migrated Session",
            created_at=now,
            updated_at=now,
            tree=tree,
        )
        self._sessions[session.id] = session
        self._write(CURRENT_SESSION_KEY, session.id)
        # Only drop the legacy record once the migrated session is stored
        if self._persist_index():
            self._delete(LEGACY_TREE_KEY)
        logger.info("Migrated legacy tree with %d nodes into %s", len(tree.nodes), session.id)

    def _persist_index(self) -> bool:
        if not self._index_loaded and not self._reload_index():
            logger.warning("Stored session index could not be read, not overwriting it")
            return False
        pairs = [[sid, session_to_record(s)] for sid, s in self._sessions.items()]
        pairs.extend(
            [sid, record] for sid, record in self._unreadable.items() if sid not in self._sessions
        )
        return self._write(SESSIONS_KEY, dump_json(pairs))

    def _reload_index(self) -> bool:
        """Retry a failed index read, merging stored sessions under in-memory ones."""
        stored = self._read_sessions()
        if not self._index_loaded:
            return False
        for sid, session in stored.items():
            self._sessions.setdefault(sid, session)
        logger.info("Recovered %d stored sessions", len(stored))
        return True

    def _read(self, key: str) -> str | None:
        try:
            return self._db.get(key)
        except PersistenceError:
            logger.exception("Failed to read %s", key)
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self._db.set(key, value)
        except PersistenceError:
            logger.exception("Failed to save %s", key)
            return False
        return True

    def _delete(self, key: str) -> bool:
        try:
            self._db.delete(key)
        except PersistenceError:
            logger.exception("Failed to delete %s", key)
            return False
        return True


class SessionNotFoundError(Exception):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")
