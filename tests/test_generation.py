"""Tests for GenerationService.spawn and the provider registry."""

import pytest

from inferflow.config import LayoutSettings, LLMConfig
from inferflow.generation.service import GenerationService, NodeNotFoundError
from inferflow.models import Position
from inferflow.providers.base import GenerationRequest
from inferflow.providers.registry import (
    ProviderNotFoundError,
    clear_providers,
    get_provider,
    list_providers,
    register_provider,
    resolve_provider,
)
from inferflow.trees.store import TreeStore
from tests.fixtures import FailingProvider, FakeProvider, make_node, make_sections


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(["## One\nfirst part\n\n## Two\nsecond part"])


@pytest.fixture
def service(provider) -> GenerationService:
    return GenerationService(provider, LLMConfig(model="test-model", temperature=0.1))


class TestSpawnRoot:
    def test_root_question_creates_root_node(self, service, provider, store: TreeStore):
        node = service.spawn(store, "  What is a tree?  ")
        assert store.root_ids == [node.id]
        assert node.question == "What is a tree?"
        assert node.name == "Question 1"
        assert node.position == Position(x=100, y=100)
        assert node.context == []
        assert node.selected_section_index_from_parent is None
        assert provider.requests[0].prompt == "What is a tree?"

    def test_answer_is_segmented(self, service, store: TreeStore):
        node = service.spawn(store, "q")
        assert [s.text for s in node.answer_sections] == ["One\nfirst part", "Two\nsecond part"]

    def test_request_uses_llm_config(self, service, provider, store: TreeStore):
        service.spawn(store, "q")
        request = provider.requests[0]
        assert isinstance(request, GenerationRequest)
        assert request.model == "test-model"
        assert request.temperature == 0.1
        assert request.max_tokens == 2000

    def test_blank_question_rejected(self, service, provider, store: TreeStore):
        with pytest.raises(ValueError):
            service.spawn(store, "   ")
        assert provider.requests == []


class TestSpawnFollowUp:
    def test_follow_up_from_root_carries_context(self, service, provider, store: TreeStore):
        store.add_node(make_node("a", question="qa", answer="aa", position=Position(x=10, y=20)))
        node = service.spawn(store, "why?", parent_id="a")

        assert node.parent_id == "a"
        assert store.get_node("a").children_ids == [node.id]
        assert node.name == "Follow-up 1"
        assert node.position == Position(x=60, y=220)
        assert node.context == ["Q: qa\n\nA: aa"]
        assert provider.requests[0].prompt == (
            "Context from previous conversation:\nQ: qa\n\nA: aa\n\nCurrent question: why?"
        )

    def test_selected_section_is_recorded(self, service, provider, store: TreeStore):
        store.add_node(make_node("a", answer="x y", answer_sections=make_sections("x", "y")))
        node = service.spawn(store, "more on y", parent_id="a", selected_section_index=1)
        assert node.selected_section_index_from_parent == 1
        assert "A (selected section): y" in provider.requests[0].prompt

    def test_unknown_parent_raises(self, service, provider, store: TreeStore):
        with pytest.raises(NodeNotFoundError) as exc_info:
            service.spawn(store, "q", parent_id="missing")
        assert exc_info.value.node_id == "missing"
        assert provider.requests == []

    def test_provider_error_leaves_tree_untouched(self, store: TreeStore):
        service = GenerationService(FailingProvider(), LLMConfig())
        store.add_node(make_node("a"))
        with pytest.raises(RuntimeError):
            service.spawn(store, "q", parent_id="a")
        assert set(store.nodes) == {"a"}

    def test_custom_placement_offsets(self, provider, store: TreeStore):
        layout = LayoutSettings(child_offset_x=0, child_offset_y=10, root_x=5, root_y=6)
        service = GenerationService(provider, LLMConfig(), layout=layout)
        root = service.spawn(store, "root")
        child = service.spawn(store, "child", parent_id=root.id)
        assert root.position == Position(x=5, y=6)
        assert child.position == Position(x=5, y=16)


class TestProviderRegistry:
    def test_register_and_get(self):
        provider = FakeProvider()
        register_provider(provider)
        assert get_provider("fake") is provider
        assert list_providers() == ["fake"]

    def test_get_unknown_raises(self):
        with pytest.raises(ProviderNotFoundError) as exc_info:
            get_provider("nonexistent")
        assert exc_info.value.name == "nonexistent"
        assert exc_info.value.available == []

    def test_resolve_uses_configured_name(self):
        wanted = FakeProvider(name="local")
        register_provider(FakeProvider(name="openai"))
        register_provider(wanted)
        assert resolve_provider(LLMConfig(provider="local")) is wanted

    def test_resolve_unknown_lists_available(self):
        register_provider(FakeProvider(name="local"))
        with pytest.raises(ProviderNotFoundError) as exc_info:
            resolve_provider(LLMConfig(provider="openai"))
        assert exc_info.value.available == ["local"]
        assert "local" in str(exc_info.value)

    def test_empty_name_is_rejected(self):
        with pytest.raises(ValueError):
            register_provider(FakeProvider(name=""))

    def test_reregistering_replaces(self):
        replacement = FakeProvider(name="fake")
        register_provider(FakeProvider())
        register_provider(replacement)
        assert get_provider("fake") is replacement
        assert list_providers() == ["fake"]

    def test_clear_empties_registry(self):
        register_provider(FakeProvider())
        clear_providers()
        assert list_providers() == []
