"""Auto-layout: deterministic positions from depth and order within a depth.

All nodes sharing a depth form one row, left to right in tree insertion
order, regardless of which parent they hang from. Each row is also pushed
right by its depth, so the tree cascades diagonally and single-node rows do
not stack on top of each other. Rows of unrelated branches can interleave;
callers that care apply manual positions afterwards.
"""

from collections import defaultdict

from inferflow.config import LayoutSettings
from inferflow.models import ConversationTree, Position


def calculate_auto_layout(
    tree: ConversationTree,
    settings: LayoutSettings | None = None,
) -> dict[str, Position]:
    """Compute a position for every node in the tree.

    Pure: reads only ids and parent links, never the stored positions.
    """
    settings = settings or LayoutSettings()
    if not tree.nodes:
        return {}

    depths = compute_depths(tree)
    rows: dict[int, list[str]] = defaultdict(list)
    for node_id in tree.nodes:
        rows[depths[node_id]].append(node_id)

    column_step = settings.node_width + settings.horizontal_spacing
    depth_step = settings.node_width + settings.diagonal_step

    positions: dict[str, Position] = {}
    for depth in sorted(rows):
        y = settings.base_y + depth * settings.vertical_spacing
        for index, node_id in enumerate(rows[depth]):
            x = settings.base_x + index * column_step + depth * depth_step
            positions[node_id] = Position(x=x, y=y)
    return positions


def compute_depths(tree: ConversationTree) -> dict[str, int]:
    """Depth of every node: parent hops to a root, memoized.

    A parent id that is not in the tree counts as depth 0, so its child is
    depth 1. In a parent cycle, the node whose parent link closes the cycle
    is treated as a root.
    """
    depths: dict[str, int] = {}
    for start_id in tree.nodes:
        if start_id in depths:
            continue

        # Walk up until a known depth, a root, a missing parent, or a cycle
        path: list[str] = []
        on_path: set[str] = set()
        current = start_id
        base = 0
        while True:
            if current in depths:
                base = depths[current] + 1
                break
            node = tree.nodes.get(current)
            if node is None:
                base = 1  # missing parent sits at depth 0
                break
            if current in on_path:
                base = 0
                break
            path.append(current)
            on_path.add(current)
            if node.parent_id is None:
                base = 0
                break
            current = node.parent_id

        for offset, node_id in enumerate(reversed(path)):
            depths[node_id] = base + offset
    return depths
