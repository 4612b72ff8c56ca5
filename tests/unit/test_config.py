from __future__ import annotations

from pathlib import Path

import pytest

from pai_openai.core.config import DEFAULT_BASE_URL, AppConfig, load_config
from pai_openai.core.result import ConfigurationError


def test_defaults(isolate_config: Path) -> None:
    config, meta = load_config()

    assert config.model == "gpt-4.1"
    assert config.json_mode is True
    assert config.timeout_ms == 180_000
    assert config.base_url == DEFAULT_BASE_URL
    assert config.has_credential is False
    assert meta.path == isolate_config
    assert meta.file_loaded is False
    assert meta.error is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("OPENAI_JSON_MODE", "false")
    monkeypatch.setenv("OPENAI_TIMEOUT_MS", "5000")
    monkeypatch.setenv("OPENAI_LOG_LEVEL", "WARNING")

    config, meta = load_config()

    assert config.has_credential is True
    assert config.api_key is not None
    assert config.api_key.get_secret_value() == "sk-env"
    assert config.model == "gpt-4o-mini"
    assert config.json_mode is False
    assert config.timeout_ms == 5000
    assert config.log_level == "warn"
    assert {"api_key", "model", "json_mode", "timeout_ms", "log_level"} <= meta.env_overrides


def test_empty_base_url_means_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_BASE_URL", "")

    assert AppConfig().base_url == DEFAULT_BASE_URL


def test_file_values_lose_to_environment(
    isolate_config: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    isolate_config.write_text(
        'model = "from-file"\njson_mode = false\n\n[context]\nmax_file_bytes = 2048\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("OPENAI_MODEL", "from-env")

    config, meta = load_config()

    assert meta.file_loaded is True
    assert config.model == "from-env"
    assert config.json_mode is False
    assert config.context.max_file_bytes == 2048


def test_nested_context_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_CONTEXT__MAX_TOTAL_BYTES", "1234")

    config, meta = load_config()

    assert config.context.max_total_bytes == 1234
    assert "context.max_total_bytes" in meta.env_overrides


def test_json_config_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{"model": "json-model", "context": {"include_extensions": ["MD"]}}', "utf-8")

    config, meta = load_config(path)

    assert meta.path == path
    assert config.model == "json-model"
    assert config.context.include_extensions == [".md"]


def test_bad_file_falls_back_to_safe_mode(
    isolate_config: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    isolate_config.write_text("model = [unclosed", encoding="utf-8")
    monkeypatch.setenv("OPENAI_MODEL", "env-model")

    config, meta = load_config()

    assert meta.error is not None
    assert "Syntax error" in meta.error
    assert config.model == "env-model"


def test_invalid_file_values_fall_back_to_defaults(isolate_config: Path) -> None:
    isolate_config.write_text("timeout_ms = -5\n", encoding="utf-8")

    config, meta = load_config()

    assert meta.error is not None
    assert config.timeout_ms == 180_000


def test_invalid_environment_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_TIMEOUT_MS", "soon")

    with pytest.raises(ConfigurationError, match="OPENAI_"):
        load_config()
