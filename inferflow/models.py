"""Canonical data structures for InferFlow.

Defined once here, referenced everywhere else. Attribute names are snake_case
in Python; the persisted and exported JSON uses camelCase keys through the
alias generator, matching the format older versions of the app wrote.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models whose JSON form uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Tree content
# ---------------------------------------------------------------------------


class Position(CamelModel):
    x: float = 0.0
    y: float = 0.0


class AnswerSection(CamelModel):
    id: str
    text: str
    index: int


class ConversationNode(CamelModel):
    """One question/answer exchange."""

    id: str
    name: str = ""
    question: str = ""
    answer: str = ""
    answer_sections: list[AnswerSection] | None = None
    parent_id: str | None = None
    children_ids: list[str] = Field(default_factory=list)
    context: list[str] = Field(default_factory=list)
    selected_section_index_from_parent: int | None = None
    position: Position = Field(default_factory=Position)
    is_collapsed: bool = False
    timestamp: int = 0  # ms since epoch, display ordering only

    def to_record(self) -> dict[str, Any]:
        """JSON-ready dict. Optional fields are omitted when unset; parentId is always present."""
        record = self.model_dump(by_alias=True, exclude_none=True)
        record["parentId"] = self.parent_id
        return record


class ConversationTree(CamelModel):
    """Ownership container: id -> node (insertion ordered) plus the root ids."""

    nodes: dict[str, ConversationNode] = Field(default_factory=dict)
    root_ids: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class Session(CamelModel):
    """A named, timestamped wrapper around one conversation tree."""

    id: str
    name: str
    created_at: int
    updated_at: int
    tree: ConversationTree = Field(default_factory=ConversationTree)
