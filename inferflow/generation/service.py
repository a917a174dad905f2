"""Generation service: context assembly, provider call, new node creation."""

import logging
import time

from inferflow.config import LayoutSettings, LLMConfig
from inferflow.generation.context import ContextBuilder, build_prompt
from inferflow.generation.segmentation import Segmenter, segment_answer
from inferflow.models import ConversationNode, Position
from inferflow.providers.base import GenerationRequest, LLMProvider
from inferflow.trees.store import TreeStore
from inferflow.utils.clock import generate_id, now_ms

logger = logging.getLogger(__name__)


class GenerationService:
    """Asks a question in the context of an existing node and stores the answer."""

    def __init__(
        self,
        provider: LLMProvider,
        llm_config: LLMConfig,
        *,
        layout: LayoutSettings | None = None,
        segmenter: Segmenter = segment_answer,
    ) -> None:
        self._provider = provider
        self._llm_config = llm_config
        self._layout = layout or LayoutSettings()
        self._segmenter = segmenter
        self._context_builder = ContextBuilder(segmenter)

    def spawn(
        self,
        store: TreeStore,
        question: str,
        parent_id: str | None = None,
        selected_section_index: int | None = None,
    ) -> ConversationNode:
        """Generate an answer and add it as a new node under parent_id (or as a root).

        Raises ValueError for a blank question and NodeNotFoundError for an
        unknown parent. Provider errors propagate unchanged and leave the
        tree untouched.
        """
        question = question.strip()
        if not question:
            raise ValueError("question must not be empty")

        parent: ConversationNode | None = None
        if parent_id is not None:
            parent = store.get_node(parent_id)
            if parent is None:
                raise NodeNotFoundError(parent_id)

        chain = store.get_node_chain(parent_id) if parent_id is not None else []
        context = self._context_builder.build(parent, chain, selected_section_index)
        prompt = build_prompt(question, context)

        request = GenerationRequest.from_config(prompt, self._llm_config)
        start = time.monotonic()
        result = self._provider.generate(request)
        logger.info(
            "Provider %s answered in %.0f ms (%d chars)",
            self._provider.name, (time.monotonic() - start) * 1000, len(result.content),
        )

        node = ConversationNode(
            id=generate_id("node"),
            name=store.generate_node_name(parent_id),
            question=question,
            answer=result.content,
            answer_sections=self._segmenter(result.content),
            parent_id=parent_id,
            context=[context] if context else [],
            selected_section_index_from_parent=selected_section_index,
            position=self._initial_position(parent),
            timestamp=now_ms(),
        )
        store.add_node(node)
        return node

    def _initial_position(self, parent: ConversationNode | None) -> Position:
        if parent is None:
            return Position(x=self._layout.root_x, y=self._layout.root_y)
        return Position(
            x=parent.position.x + self._layout.child_offset_x,
            y=parent.position.y + self._layout.child_offset_y,
        )


class NodeNotFoundError(Exception):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")
