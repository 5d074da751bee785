"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cli.config import find_config, load_config_model
from cli.config_models import FactStoreConfig


class TestDefaults:
    def test_defaults(self):
        config = FactStoreConfig()
        assert config.llm.provider == "auto"
        assert config.embeddings.provider == "auto"
        assert config.knowledge.default_team == "default"
        assert config.knowledge.min_confidence == 0.6
        assert config.knowledge.judge == "llm"
        assert config.knowledge.pending_ttl_seconds == 3600
        assert config.retry.max_attempts == 2
        assert config.logging.level == "WARNING"

    def test_db_path_expanded(self):
        assert "~" not in str(FactStoreConfig().paths.db_path)


class TestValidation:
    def test_invalid_judge(self):
        with pytest.raises(ValidationError):
            FactStoreConfig.from_dict({"knowledge": {"judge": "oracle"}})

    def test_judge_case_insensitive(self):
        config = FactStoreConfig.from_dict({"knowledge": {"judge": "Heuristic"}})
        assert config.knowledge.judge == "heuristic"

    def test_invalid_llm_provider(self):
        with pytest.raises(ValidationError):
            FactStoreConfig.from_dict({"llm": {"provider": "gemini"}})

    def test_min_confidence_bounds(self):
        with pytest.raises(ValidationError):
            FactStoreConfig.from_dict({"knowledge": {"min_confidence": 1.5}})

    def test_log_level_uppercased(self):
        assert FactStoreConfig.from_dict({"logging": {"level": "debug"}}).logging.level == "DEBUG"

    def test_env_expansion(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "sk-ant-secret")
        config = FactStoreConfig.from_dict({"llm": {"api_key": "${MY_KEY}"}})
        assert config.llm.api_key == "sk-ant-secret"

    def test_env_expansion_missing_is_none(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        config = FactStoreConfig.from_dict({"embeddings": {"api_key": "${NOT_SET_ANYWHERE}"}})
        assert config.embeddings.api_key is None

    def test_string_paths(self, tmp_path):
        config = FactStoreConfig.from_dict({"paths": {"db_path": str(tmp_path / "x.db")}})
        assert config.paths.db_path == tmp_path / "x.db"


class TestLoading:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "factstore.yaml"
        path.write_text(
            "knowledge:\n  default_team: acme\n  judge: heuristic\n"
            f"paths:\n  db_path: {tmp_path / 'facts.db'}\n"
        )
        config = load_config_model(path)
        assert config.knowledge.default_team == "acme"
        assert config.paths.db_path == tmp_path / "facts.db"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "factstore.yaml"
        path.write_text("")
        assert load_config_model(path).knowledge.default_team == "default"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "factstore.yaml"
        path.write_text("knowledge: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_model(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "factstore.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config_model(path)

    def test_validation_error_wrapped(self, tmp_path):
        path = tmp_path / "factstore.yaml"
        path.write_text("knowledge:\n  judge: oracle\n")
        with pytest.raises(ValueError, match="validation failed"):
            load_config_model(path)


class TestFindConfig:
    def test_env_var_wins(self, tmp_path, monkeypatch):
        target = tmp_path / "custom.yaml"
        monkeypatch.setenv("FACTSTORE_CONFIG", str(target))
        assert find_config() == target

    def test_cwd_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FACTSTORE_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / "factstore.yaml").write_text("{}\n")
        assert find_config() == Path.cwd() / "factstore.yaml"

    def test_none_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FACTSTORE_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_config() is None
