"""Shared test helpers: node/tree builders and a fake provider."""

import json
from typing import Any

from inferflow.models import AnswerSection, ConversationNode, ConversationTree
from inferflow.providers.base import GenerationRequest, GenerationResult, LLMProvider
from inferflow.trees.store import TreeStore


def make_node(
    node_id: str,
    parent_id: str | None = None,
    question: str | None = None,
    answer: str | None = None,
    **overrides: Any,
) -> ConversationNode:
    """Create a ConversationNode with predictable question/answer text."""
    return ConversationNode(
        id=node_id,
        parent_id=parent_id,
        question=question if question is not None else f"Question {node_id}?",
        answer=answer if answer is not None else f"Answer {node_id}.",
        **overrides,
    )


def make_sections(*texts: str) -> list[AnswerSection]:
    return [AnswerSection(id=f"section-{i}", text=t, index=i) for i, t in enumerate(texts)]


def build_store(edges: list[tuple[str, str | None]]) -> TreeStore:
    """TreeStore populated from (id, parent_id) pairs, added in order."""
    store = TreeStore()
    for node_id, parent_id in edges:
        store.add_node(make_node(node_id, parent_id))
    return store


def build_tree(edges: list[tuple[str, str | None]]) -> ConversationTree:
    return build_store(edges).tree


def raw_node(node_id: str, parent_id: str | None = None, **fields: Any) -> dict[str, Any]:
    """Node record as older versions of the app stored it (camelCase, no name)."""
    record = {
        "id": node_id,
        "question": f"Question {node_id}?",
        "answer": f"Answer {node_id}.",
        "parentId": parent_id,
        "childrenIds": [],
        "position": {"x": 0, "y": 0},
        "isCollapsed": False,
        "timestamp": 1_600_000_000_000,
    }
    record.update(fields)
    return record


def legacy_blob(nodes: list[dict[str, Any]], root_ids: list[str]) -> str:
    """Legacy single-tree record: {nodes: [[id, node], ...], rootIds}."""
    return json.dumps({"nodes": [[n["id"], n] for n in nodes], "rootIds": root_ids})


class FakeProvider(LLMProvider):
    """Provider returning canned answers and recording every request."""

    def __init__(self, answers: list[str] | None = None, *, name: str = "fake") -> None:
        self._answers = list(answers or ["Fake answer."])
        self._name = name
        self.requests: list[GenerationRequest] = []

    @property
    def name(self) -> str:
        return self._name

    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        content = self._answers.pop(0) if len(self._answers) > 1 else self._answers[0]
        return GenerationResult(content=content, model=request.model)


class FailingProvider(LLMProvider):
    """Provider whose every call raises."""

    @property
    def name(self) -> str:
        return "failing"

    def generate(self, request: GenerationRequest) -> GenerationResult:
        raise RuntimeError("provider unavailable")
