"""Tree store: owns one conversation tree and its mutation contract.

Shape lives in ``parent_id``; ``children_ids`` and ``root_ids`` are kept in
step with it by every mutator here. Structural changes go only through
``add_node`` and ``delete_node``.
"""

import logging
from collections.abc import Callable, Iterator, Mapping

from inferflow.models import ConversationNode, ConversationTree, Position

logger = logging.getLogger(__name__)

# Fields update_node refuses to touch.
_STRUCTURAL_FIELDS = frozenset({"id", "parent_id", "children_ids", "parentId", "childrenIds"})


class TreeStore:
    """CRUD over a single ConversationTree with cascading delete."""

    def __init__(
        self,
        tree: ConversationTree | None = None,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._tree = tree if tree is not None else ConversationTree()
        self._on_change = on_change

    # -- Read side --

    @property
    def tree(self) -> ConversationTree:
        return self._tree

    @property
    def nodes(self) -> dict[str, ConversationNode]:
        return self._tree.nodes

    @property
    def root_ids(self) -> list[str]:
        return self._tree.root_ids

    def __len__(self) -> int:
        return len(self._tree.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._tree.nodes

    def __iter__(self) -> Iterator[ConversationNode]:
        return iter(list(self._tree.nodes.values()))

    def get_node(self, node_id: str) -> ConversationNode | None:
        """Return the node, or None if not found."""
        return self._tree.nodes.get(node_id)

    def get_node_chain(self, node_id: str) -> list[ConversationNode]:
        """Ancestor chain from the root down to and including node_id.

        Empty if node_id is unknown. Stops at a missing parent or at a node
        already visited, so a malformed tree cannot loop forever.
        """
        chain: list[ConversationNode] = []
        seen: set[str] = set()
        current_id: str | None = node_id
        while current_id is not None and current_id not in seen:
            node = self._tree.nodes.get(current_id)
            if node is None:
                break
            seen.add(current_id)
            chain.append(node)
            current_id = node.parent_id
        chain.reverse()
        return chain

    def generate_node_name(self, parent_id: str | None) -> str:
        """Advisory label for a node about to be created under parent_id."""
        if parent_id is None:
            return f"Question {len(self._tree.root_ids) + 1}"
        parent = self._tree.nodes.get(parent_id)
        if parent is not None:
            return f"Follow-up {len(parent.children_ids) + 1}"
        return f"Node {len(self._tree.nodes) + 1}"

    def snapshot(self) -> ConversationTree:
        """Deep copy of the current tree."""
        return self._tree.model_copy(deep=True)

    def check_invariants(self) -> list[str]:
        """Return a description of every broken tree invariant (empty if consistent)."""
        problems: list[str] = []
        nodes = self._tree.nodes

        for node_id, node in nodes.items():
            if node.id != node_id:
                problems.append(f"{node_id}: keyed under a different id ({node.id})")
            if node.parent_id is not None:
                parent = nodes.get(node.parent_id)
                if parent is None:
                    problems.append(f"{node_id}: parent {node.parent_id} does not exist")
                elif node_id not in parent.children_ids:
                    problems.append(f"{node_id}: missing from children of {node.parent_id}")
            if len(set(node.children_ids)) != len(node.children_ids):
                problems.append(f"{node_id}: duplicate children")
            for child_id in node.children_ids:
                child = nodes.get(child_id)
                if child is None:
                    problems.append(f"{node_id}: dangling child {child_id}")
                elif child.parent_id != node_id:
                    problems.append(f"{node_id}: child {child_id} points at {child.parent_id}")

        expected_roots = {nid for nid, n in nodes.items() if n.parent_id is None}
        if set(self._tree.root_ids) != expected_roots:
            problems.append(
                f"root set mismatch: stored {sorted(self._tree.root_ids)}, "
                f"expected {sorted(expected_roots)}"
            )
        if len(set(self._tree.root_ids)) != len(self._tree.root_ids):
            problems.append("duplicate root ids")

        for node_id in nodes:
            top = self.get_node_chain(node_id)[0]
            if top.parent_id is not None and top.parent_id in nodes:
                problems.append(f"{node_id}: parent chain contains a cycle")

        return problems

    # -- Mutators --

    def add_node(self, node: ConversationNode) -> None:
        """Insert a node and link it under its parent (or as a root)."""
        nodes = self._tree.nodes
        if node.id in nodes:
            logger.warning("add_node: node %s already exists, ignoring", node.id)
            return

        node.children_ids = []
        if node.parent_id is not None and node.parent_id not in nodes:
            logger.warning(
                "add_node: parent %s of node %s not found, inserting as a root",
                node.parent_id, node.id,
            )
            node.parent_id = None

        nodes[node.id] = node
        if node.parent_id is None:
            self._tree.root_ids.append(node.id)
        else:
            nodes[node.parent_id].children_ids.append(node.id)
        self._changed()

    def update_node(self, node_id: str, **fields: object) -> ConversationNode | None:
        """Merge fields into an existing node. Unknown ids are a no-op."""
        node = self._tree.nodes.get(node_id)
        if node is None:
            return None

        blocked = _STRUCTURAL_FIELDS.intersection(fields)
        if blocked:
            logger.warning(
                "update_node: ignoring structural fields %s for %s",
                sorted(blocked), node_id,
            )
        updates = {k: v for k, v in fields.items() if k not in _STRUCTURAL_FIELDS}
        # Cached sections belong to the old answer
        answer_changed = "answer" in updates and updates["answer"] != node.answer
        if answer_changed and not {"answer_sections", "answerSections"} & updates.keys():
            updates["answer_sections"] = None

        merged = node.model_dump()
        merged.update(updates)
        updated = ConversationNode.model_validate(merged)
        self._tree.nodes[node_id] = updated
        self._changed()
        return updated

    def delete_node(self, node_id: str) -> list[str]:
        """Remove a node and all of its descendants.

        Returns the removed ids in removal order, empty if node_id is unknown.
        """
        nodes = self._tree.nodes
        node = nodes.get(node_id)
        if node is None:
            return []

        if node.parent_id is not None:
            parent = nodes.get(node.parent_id)
            if parent is not None:
                parent.children_ids = [c for c in parent.children_ids if c != node_id]

        removed: list[str] = []
        worklist = [node_id]
        while worklist:
            current_id = worklist.pop()
            current = nodes.pop(current_id, None)
            if current is None:
                continue  # already removed earlier in the cascade
            removed.append(current_id)
            worklist.extend(reversed(current.children_ids))

        removed_set = set(removed)
        self._tree.root_ids = [r for r in self._tree.root_ids if r not in removed_set]
        self._changed()
        return removed

    def toggle_collapse(self, node_id: str) -> None:
        node = self._tree.nodes.get(node_id)
        if node is None:
            return
        node.is_collapsed = not node.is_collapsed
        self._changed()

    def apply_positions(self, positions: Mapping[str, Position]) -> int:
        """Write computed positions into the nodes. Returns how many were applied."""
        applied = 0
        for node_id, position in positions.items():
            node = self._tree.nodes.get(node_id)
            if node is None:
                logger.warning("apply_positions: node %s not in tree", node_id)
                continue
            node.position = position.model_copy()
            applied += 1
        self._changed()
        return applied

    def clear_all(self) -> None:
        self._tree.nodes = {}
        self._tree.root_ids = []
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
