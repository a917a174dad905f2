"""Tests for configuration loading: defaults, YAML, environment, .env."""

import pytest

from inferflow.config import AppConfig, LLMConfig

ENV_VARS = [
    "INFERFLOW_DB_PATH", "INFERFLOW_LOG_LEVEL", "INFERFLOW_CONFIG",
    "OPENAI_API_KEY", "INFERFLOW_LLM_MODEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        config = AppConfig()
        assert config.db_path == "inferflow.db"
        assert config.log_level == "INFO"
        assert config.llm is None
        assert config.layout.vertical_spacing == 350
        assert config.layout.child_offset_y == 200

    def test_llm_defaults(self):
        llm = LLMConfig()
        assert (llm.provider, llm.model, llm.temperature, llm.max_tokens) == (
            "openai", "gpt-4", 0.7, 2000,
        )


class TestYaml:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "db_path: data/flow.db\n"
            "layout:\n  vertical_spacing: 300\n"
            "llm:\n  model: gpt-4o\n"
        )
        config = AppConfig.from_yaml(path)
        assert config.db_path == "data/flow.db"
        assert config.layout.vertical_spacing == 300
        assert config.layout.base_x == 300
        assert config.llm.model == "gpt-4o"

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert AppConfig.from_yaml(path) == AppConfig()


class TestEnvironment:
    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("db_path: from-yaml.db\nllm:\n  api_key: yaml-key\n")
        monkeypatch.setenv("INFERFLOW_CONFIG", str(path))
        monkeypatch.setenv("INFERFLOW_DB_PATH", "from-env.db")
        monkeypatch.setenv("INFERFLOW_LOG_LEVEL", "debug")
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")

        config = AppConfig.from_env(tmp_path / "no.env")
        assert config.db_path == "from-env.db"
        assert config.log_level == "DEBUG"
        assert config.llm.api_key == "env-key"

    def test_api_key_creates_llm_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("INFERFLOW_LLM_MODEL", "gpt-4o-mini")
        config = AppConfig.from_env(tmp_path / "no.env")
        assert config.llm == LLMConfig(api_key="sk-test", model="gpt-4o-mini")

    def test_dotenv_file_is_loaded(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("INFERFLOW_DB_PATH=dotenv.db\n")
        config = AppConfig.from_env(env_file)
        assert config.db_path == "dotenv.db"

    def test_dotenv_does_not_override_process_env(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("INFERFLOW_DB_PATH=dotenv.db\n")
        monkeypatch.setenv("INFERFLOW_DB_PATH", "process.db")
        assert AppConfig.from_env(env_file).db_path == "process.db"

    def test_resolved_db_path_expands_user(self):
        assert "~" not in AppConfig(db_path="~/flow.db").resolved_db_path()
        assert AppConfig(db_path=":memory:").resolved_db_path() == ":memory:"
