"""Export service: versioned session documents and the markdown summary."""

from inferflow.generation.segmentation import Segmenter, segment_answer
from inferflow.models import ConversationNode, ConversationTree, Session
from inferflow.sessions.migration import EXPORT_FORMAT_VERSION
from inferflow.sessions.serialization import session_to_record
from inferflow.utils.clock import format_local_datetime, now_ms
from inferflow.utils.json import dump_json

SECTION_PREVIEW_CHARS = 150


def export_session_document(session: Session, *, exported_at: int | None = None) -> str:
    """Self-contained JSON document for one session (pretty printed)."""
    document = {
        "version": EXPORT_FORMAT_VERSION,
        "exportedAt": exported_at if exported_at is not None else now_ms(),
        "session": session_to_record(session),
    }
    return dump_json(document, pretty=True)


def conversation_chains(tree: ConversationTree) -> list[list[ConversationNode]]:
    """One depth-first, pre-order node list per root, each node visited once."""
    chains: list[list[ConversationNode]] = []
    processed: set[str] = set()
    for root_id in tree.root_ids:
        if root_id not in tree.nodes:
            continue
        chain: list[ConversationNode] = []
        stack = [root_id]
        while stack:
            node_id = stack.pop()
            if node_id in processed:
                continue
            node = tree.nodes.get(node_id)
            if node is None:
                continue
            processed.add(node_id)
            chain.append(node)
            stack.extend(reversed(node.children_ids))
        if chain:
            chains.append(chain)
    return chains


def render_text_summary(
    tree: ConversationTree,
    *,
    segmenter: Segmenter = segment_answer,
    generated_at: int | None = None,
) -> str:
    """Markdown summary of every conversation chain in the tree.

    Follow-ups that were asked about one section of their parent's answer
    show a preview of that section.
    """
    chains = conversation_chains(tree)
    generated = generated_at if generated_at is not None else now_ms()

    lines = [
        "# Conversation Summary",
        "",
        f"Generated: {format_local_datetime(generated)}",
        "",
        f"Total Conversations: {len(chains)}",
        f"Total Nodes: {len(tree.nodes)}",
        "",
        "---",
        "",
    ]

    for chain_index, chain in enumerate(chains):
        root = chain[0]
        lines += [
            f"## Conversation Chain {chain_index + 1}",
            "",
            f"**Root Question:** {root.question}",
            "",
        ]
        for node_index, node in enumerate(chain):
            if node_index == 0:
                lines.append(f"### {node.name or 'Question 1'}: {node.question}")
            else:
                lines.append(f"#### {node.name or f'Follow-up {node_index}'}")
                lines.append(f"**Q:** {node.question}")
                note = _section_note(tree, node, segmenter)
                if note:
                    lines.append(note)
            lines += [f"**A:** {node.answer}", ""]
        lines += ["---", ""]

    return "\n".join(lines)


def _section_note(
    tree: ConversationTree,
    node: ConversationNode,
    segmenter: Segmenter,
) -> str | None:
    index = node.selected_section_index_from_parent
    if index is None or node.parent_id is None:
        return None
    parent = tree.nodes.get(node.parent_id)
    if parent is None:
        return None

    sections = parent.answer_sections or segmenter(parent.answer)
    if 0 <= index < len(sections):
        text = sections[index].text
        preview = text[:SECTION_PREVIEW_CHARS]
        ellipsis = "..." if len(text) > SECTION_PREVIEW_CHARS else ""
        return f'*Context from parent: "{preview}{ellipsis}"*'
    return f"*Context: Selected section {index + 1} from parent*"
