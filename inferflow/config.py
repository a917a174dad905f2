"""Application configuration.

Precedence, lowest to highest: model defaults, an optional YAML file, then
environment variables (a ``.env`` file is loaded first and never overrides
variables already set in the process).

Example YAML::

    db_path: ~/.inferflow/inferflow.db
    log_level: DEBUG
    layout:
      vertical_spacing: 300
    llm:
      provider: openai
      model: gpt-4o
      temperature: 0.2
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_DB_PATH = "inferflow.db"


class LayoutSettings(BaseModel):
    """Geometry for auto-layout and for placing freshly spawned nodes."""

    base_x: float = 300
    base_y: float = 100
    node_width: float = 400
    horizontal_spacing: float = 500
    vertical_spacing: float = 350
    diagonal_step: float = 100
    # Spawn placement
    child_offset_x: float = 50
    child_offset_y: float = 200
    root_x: float = 100
    root_y: float = 100


class LLMConfig(BaseModel):
    provider: str = "openai"
    api_key: str = ""
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int = 2000


class AppConfig(BaseModel):
    db_path: str = DEFAULT_DB_PATH
    log_level: str = "INFO"
    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    llm: LLMConfig | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load config from a YAML file. An empty file gives the defaults."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "AppConfig":
        """Build config from the environment, layered over INFERFLOW_CONFIG if set."""
        load_dotenv(dotenv_path, override=False)

        config_file = os.environ.get("INFERFLOW_CONFIG")
        config = cls.from_yaml(config_file) if config_file else cls()

        updates: dict[str, Any] = {}
        if db_path := os.environ.get("INFERFLOW_DB_PATH"):
            updates["db_path"] = db_path
        if log_level := os.environ.get("INFERFLOW_LOG_LEVEL"):
            updates["log_level"] = log_level.upper()

        # API key from the environment wins over a configured one
        api_key = os.environ.get("OPENAI_API_KEY")
        model = os.environ.get("INFERFLOW_LLM_MODEL")
        if api_key or model:
            llm = config.llm or LLMConfig()
            llm_updates: dict[str, Any] = {}
            if api_key:
                llm_updates["api_key"] = api_key
            if model:
                llm_updates["model"] = model
            updates["llm"] = llm.model_copy(update=llm_updates)

        return config.model_copy(update=updates)

    def resolved_db_path(self) -> str:
        if self.db_path == ":memory:":
            return self.db_path
        return str(Path(self.db_path).expanduser())
