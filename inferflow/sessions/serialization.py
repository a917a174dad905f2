"""Serialize/deserialize boundary between in-memory trees and stored JSON.

In memory a tree is a mapping; stored and exported trees commit to an
ordered list of ``[id, node]`` pairs, which keeps insertion order and is the
shape older versions of the app wrote.
"""

from typing import Any

from pydantic import ValidationError

from inferflow.models import ConversationNode, ConversationTree, Session


class RecordFormatError(ValueError):
    """A stored or imported record does not have the expected structure."""


def tree_to_record(tree: ConversationTree) -> dict[str, Any]:
    return {
        "nodes": [[node_id, node.to_record()] for node_id, node in tree.nodes.items()],
        "rootIds": list(tree.root_ids),
    }


def tree_from_record(record: Any) -> ConversationTree:
    """Rebuild a tree from its record. No structural repair happens here.

    Raises RecordFormatError if the record or any node pair is malformed.
    """
    if not isinstance(record, dict):
        raise RecordFormatError("tree must be an object")

    raw_nodes = record.get("nodes") or []
    if not isinstance(raw_nodes, list):
        raise RecordFormatError("tree.nodes must be a list of [id, node] pairs")

    nodes: dict[str, ConversationNode] = {}
    for position, pair in enumerate(raw_nodes):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise RecordFormatError(f"tree.nodes[{position}] is not an [id, node] pair")
        node_id, raw_node = pair
        if not isinstance(node_id, str) or not isinstance(raw_node, dict):
            raise RecordFormatError(f"tree.nodes[{position}] has an invalid id or node")
        try:
            node = ConversationNode.model_validate(upgrade_node_record(node_id, raw_node))
        except ValidationError as e:
            raise RecordFormatError(f"node {node_id!r} is invalid: {e}") from e
        if node.id != node_id:
            node.id = node_id
        nodes[node_id] = node

    root_ids = record.get("rootIds") or []
    if not isinstance(root_ids, list) or not all(isinstance(r, str) for r in root_ids):
        raise RecordFormatError("tree.rootIds must be a list of ids")

    return ConversationTree(nodes=nodes, root_ids=list(root_ids))


_TEXT_FIELDS = ("name", "question", "answer")
_LIST_FIELDS = ("childrenIds", "context")


def upgrade_node_record(node_id: str, raw: dict[str, Any]) -> dict[str, Any]:
    """Coerce node shapes written by older versions into the current one.

    Null text becomes empty, null lists become empty, a single context string
    becomes a one-item list, and unusable optional values are dropped so the
    model defaults apply. The input dict is not modified.
    """
    record = {**raw, "id": node_id}
    for field in _TEXT_FIELDS:
        if record.get(field) is None:
            record[field] = ""
        elif not isinstance(record[field], str):
            record[field] = str(record[field])
    for field in _LIST_FIELDS:
        value = record.get(field)
        if value is None:
            record[field] = []
        elif isinstance(value, str):
            record[field] = [value] if value else []
    if isinstance(record["context"], list):
        record["context"] = [c for c in record["context"] if isinstance(c, str)]

    for field in ("position", "isCollapsed", "timestamp"):
        if field in record and record[field] is None:
            del record[field]
    timestamp = record.get("timestamp")
    if isinstance(timestamp, (str, bool)):
        del record["timestamp"]

    sections = record.get("answerSections")
    if sections is not None:
        if isinstance(sections, list):
            record["answerSections"] = [
                {
                    "id": s.get("id") or f"section-{i}",
                    "text": s.get("text") or "",
                    "index": s["index"] if isinstance(s.get("index"), int) else i,
                }
                for i, s in enumerate(sections)
                if isinstance(s, dict)
            ]
        else:
            del record["answerSections"]
    return record


def session_to_record(session: Session) -> dict[str, Any]:
    return {
        "id": session.id,
        "name": session.name,
        "createdAt": session.created_at,
        "updatedAt": session.updated_at,
        "tree": tree_to_record(session.tree),
    }


def session_from_record(
    record: Any,
    *,
    fallback_id: str,
    now: int,
) -> Session:
    """Rebuild a session, filling missing id/name/timestamps.

    Raises RecordFormatError for a non-object record or a malformed tree.
    """
    if not isinstance(record, dict):
        raise RecordFormatError("session must be an object")
    raw_id = record.get("id")
    session_id = raw_id if isinstance(raw_id, str) and raw_id else fallback_id
    name = record.get("name")
    tree_record = record.get("tree")
    tree = tree_from_record(tree_record) if tree_record is not None else ConversationTree()
    return Session(
        id=session_id,
        name=name if isinstance(name, str) and name else f"Session {session_id}",
        created_at=_as_ms(record.get("createdAt"), now),
        updated_at=_as_ms(record.get("updatedAt"), now),
        tree=tree,
    )


def _as_ms(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return int(value)
