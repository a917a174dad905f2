"""One-shot migration pass for stored and imported data.

Runs before any other component sees a loaded tree, so the rest of the code
can assume every node has a name and the parent/child/root links agree.
"""

import json
import logging
from typing import Any

from inferflow.models import ConversationTree, Session
from inferflow.sessions.serialization import RecordFormatError, tree_from_record

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"
KNOWN_EXPORT_VERSIONS = frozenset({"1.0"})


def normalize_tree(tree: ConversationTree) -> list[str]:
    """Repair the structural links of a tree in place.

    ``parent_id`` is the source of truth. Parents that do not exist and
    parent cycles are cut (the affected node becomes a root), then
    ``children_ids`` and ``root_ids`` are rebuilt from the parent links,
    keeping their stored order where it is still valid.

    Returns a description of every repair made.
    """
    nodes = tree.nodes
    repairs: list[str] = []

    for node_id, node in nodes.items():
        if node.id != node_id:
            repairs.append(f"{node_id}: id {node.id} replaced by its key")
            node.id = node_id
        if node.parent_id is not None and node.parent_id not in nodes:
            repairs.append(f"{node_id}: missing parent {node.parent_id}, detached to root")
            node.parent_id = None

    for start_id in nodes:
        while True:
            path: list[str] = []
            on_path: set[str] = set()
            current: str | None = start_id
            while current is not None and current not in on_path:
                path.append(current)
                on_path.add(current)
                current = nodes[current].parent_id
            if current is None:
                break
            # path[-1] links back into the path
            cut = path[-1]
            repairs.append(f"{cut}: parent cycle through {current}, detached to root")
            nodes[cut].parent_id = None

    expected_children: dict[str, list[str]] = {node_id: [] for node_id in nodes}
    expected_roots: list[str] = []
    for node_id, node in nodes.items():
        if node.parent_id is None:
            expected_roots.append(node_id)
        else:
            expected_children[node.parent_id].append(node_id)

    for node_id, node in nodes.items():
        rebuilt = _merge_order(node.children_ids, expected_children[node_id])
        if rebuilt != node.children_ids:
            repairs.append(f"{node_id}: children rebuilt")
            node.children_ids = rebuilt

    rebuilt_roots = _merge_order(tree.root_ids, expected_roots)
    if rebuilt_roots != tree.root_ids:
        repairs.append("root ids rebuilt")
        tree.root_ids = rebuilt_roots

    return repairs


def _merge_order(stored: list[str], expected: list[str]) -> list[str]:
    """Stored order for ids that belong, then the missing ones in tree order."""
    wanted = set(expected)
    merged: list[str] = []
    seen: set[str] = set()
    for item in stored:
        if item in wanted and item not in seen:
            merged.append(item)
            seen.add(item)
    merged.extend(item for item in expected if item not in seen)
    return merged


def backfill_node_names(tree: ConversationTree) -> int:
    """Name every unnamed node the way it would have been named at creation.

    A root gets ``Question N`` from its position among the roots, a child
    ``Follow-up N`` from its position among its siblings. Assumes a
    normalized tree; anything else falls back to ``Node N``. Returns the
    number of nodes named.
    """
    named = 0
    for position, (node_id, node) in enumerate(tree.nodes.items()):
        if node.name:
            continue
        if node.parent_id is None and node_id in tree.root_ids:
            node.name = f"Question {tree.root_ids.index(node_id) + 1}"
        else:
            parent = tree.nodes.get(node.parent_id) if node.parent_id else None
            if parent is not None and node_id in parent.children_ids:
                node.name = f"Follow-up {parent.children_ids.index(node_id) + 1}"
            else:
                node.name = f"Node {position + 1}"
        named += 1
    return named


def migrate_tree(tree: ConversationTree) -> ConversationTree:
    """Normalize and name-fill a freshly deserialized tree (in place)."""
    repairs = normalize_tree(tree)
    for repair in repairs:
        logger.warning("Tree repaired on load: %s", repair)
    named = backfill_node_names(tree)
    if named:
        logger.info("Back-filled names for %d nodes", named)
    return tree


def migrate_session(session: Session) -> Session:
    migrate_tree(session.tree)
    return session


def migrate_export_document(data: Any) -> dict[str, Any]:
    """Bring an export document to the current format.

    A missing or older ``version`` is read as the baseline 1.0 format; an
    unknown newer version is read the same way, with a warning.
    """
    if not isinstance(data, dict):
        raise RecordFormatError("export document must be an object")
    version = data.get("version")
    if version is None:
        logger.info("Export document has no version, reading as %s", EXPORT_FORMAT_VERSION)
    elif str(version) not in KNOWN_EXPORT_VERSIONS:
        logger.warning(
            "Unknown export version %r, reading as %s", version, EXPORT_FORMAT_VERSION
        )
    return {**data, "version": EXPORT_FORMAT_VERSION}


def migrate_legacy_tree(raw: str) -> ConversationTree:
    """Convert the legacy single-tree blob into a migrated tree.

    Raises RecordFormatError if the blob is not JSON or not a tree record.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RecordFormatError(f"legacy tree is not valid JSON: {e}") from e
    return migrate_tree(tree_from_record(data))
