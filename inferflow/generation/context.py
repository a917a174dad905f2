"""Context assembly for follow-up questions.

ContextBuilder turns a node's ancestor chain into the text block sent ahead
of a new question. Which part of the chain is used depends on where the user
branches from and whether a single answer section was selected:

- no chain: no context (a new root question)
- branching from a non-root node without a selected section: only that
  node's own question and answer
- otherwise: the whole chain, root first, with the last answer replaced by
  the selected section when one is given and exists
"""

from inferflow.generation.segmentation import Segmenter, segment_answer
from inferflow.models import AnswerSection, ConversationNode


class ContextBuilder:
    """Renders ancestor chains into prompt context. Never mutates its inputs."""

    def __init__(self, segmenter: Segmenter = segment_answer) -> None:
        self._segmenter = segmenter

    def build(
        self,
        parent_node: ConversationNode | None,
        chain: list[ConversationNode],
        selected_section_index: int | None = None,
    ) -> str:
        """Render chain (root first) into Q/A lines."""
        if not chain:
            return ""

        continuing_from_child = (
            parent_node is not None
            and parent_node.parent_id is not None
            and selected_section_index is None
        )
        if continuing_from_child:
            immediate = chain[-1]
            return self._join([f"Q: {immediate.question}", f"A: {immediate.answer}"])

        parts: list[str] = []
        last = len(chain) - 1
        for i, node in enumerate(chain):
            parts.append(f"Q: {node.question}")
            section = None
            if i == last and selected_section_index is not None:
                section = self.section_at(node, selected_section_index)
            if section is not None:
                parts.append(f"A (selected section): {section.text}")
            else:
                parts.append(f"A: {node.answer}")
        return self._join(parts)

    def sections_for(self, node: ConversationNode) -> list[AnswerSection]:
        """Cached sections of a node, segmenting the answer only when none are cached."""
        if node.answer_sections:
            return node.answer_sections
        return self._segmenter(node.answer)

    def section_at(self, node: ConversationNode, index: int) -> AnswerSection | None:
        """Section at index, or None when the index is out of range."""
        sections = self.sections_for(node)
        if 0 <= index < len(sections):
            return sections[index]
        return None

    @staticmethod
    def _join(parts: list[str]) -> str:
        return "\n\n".join(parts)


def build_prompt(question: str, context: str) -> str:
    """Combine rendered context and the new question into the final prompt."""
    if not context:
        return question
    return f"Context from previous conversation:\n{context}\n\nCurrent question: {question}"
