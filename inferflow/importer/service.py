"""Import of exported session documents.

Everything is parsed and validated before anything is returned, so a failed
import never leaves partial state behind.
"""

import json
import logging

from inferflow.models import Session
from inferflow.sessions.migration import migrate_export_document, migrate_session
from inferflow.sessions.serialization import RecordFormatError, tree_from_record
from inferflow.utils.clock import format_local_datetime, generate_id, now_ms

logger = logging.getLogger(__name__)


def parse_session_document(text: str | bytes, *, now: int | None = None) -> Session:
    """Parse an export document into a new, migrated Session.

    The session gets a fresh id; name and createdAt are kept when present,
    updatedAt is set to now. Raises ImportFormatError for anything that is
    not a session document.
    """
    now = now if now is not None else now_ms()
    data = _load_json(text)

    try:
        document = migrate_export_document(data)
    except RecordFormatError as e:
        raise ImportFormatError(str(e)) from e

    raw_session = document.get("session")
    if not isinstance(raw_session, dict) or not isinstance(raw_session.get("tree"), dict):
        raise ImportFormatError("Invalid session file format: missing session or tree")

    try:
        tree = tree_from_record(raw_session["tree"])
    except RecordFormatError as e:
        raise ImportFormatError(f"Invalid session file format: {e}") from e

    created_at = raw_session.get("createdAt")
    if isinstance(created_at, bool) or not isinstance(created_at, (int, float)) or created_at <= 0:
        created_at = now

    name = raw_session.get("name")
    if not isinstance(name, str) or not name:
        name = f"Imported Session {format_local_datetime(now)}"

    session = Session(
        id=generate_id("session"),
        name=name,
        created_at=int(created_at),
        updated_at=now,
        tree=tree,
    )
    migrate_session(session)
    logger.info(
        "Parsed session document %r with %d nodes", session.name, len(session.tree.nodes)
    )
    return session


def _load_json(text: str | bytes) -> object:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Invalid JSON: {e}") from e


class ImportFormatError(Exception):
    """Raised when imported data is unparseable or not a session document."""
