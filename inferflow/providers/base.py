"""Abstract language-model provider interface and shared data types."""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from inferflow.config import LLMConfig


class GenerationRequest(BaseModel):
    """Everything a provider needs to answer one prompt."""

    prompt: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000

    @classmethod
    def from_config(cls, prompt: str, config: LLMConfig) -> "GenerationRequest":
        return cls(
            prompt=prompt,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )


class GenerationResult(BaseModel):
    """Full response from a provider."""

    content: str
    model: str
    finish_reason: str | None = None
    usage: dict[str, int] | None = None
    latency_ms: int | None = None


class LLMProvider(ABC):
    """Abstract interface for language-model providers.

    Calls are synchronous; retries and error policy belong to the provider
    or its caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'openai')."""
        ...

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Answer the prompt. Returns the full result."""
        ...
