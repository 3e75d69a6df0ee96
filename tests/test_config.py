"""Tests for fate_engine.config — env loading and factory helpers."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from fate_engine.config import (
    Settings,
    build_llm,
    build_oracle,
    build_storage,
    load_settings,
)
from fate_engine.llm import HttpLLM
from fate_engine.oracle import NarrativeOracle

FATE_VARS = (
    "FATE_LLM_URL",
    "FATE_LLM_API_KEY",
    "FATE_LLM_FORMAT",
    "FATE_LLM_MODEL",
    "FATE_LLM_TIMEOUT",
    "FATE_ORACLE_TIMEOUT",
    "FATE_DATA_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset every FATE_* variable, and drop whatever load_dotenv sets during the test."""
    for var in FATE_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


def test_defaults_without_env(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.env")
    assert settings == Settings()
    assert settings.llm_format == "openai_chat"
    assert settings.oracle_timeout == 90.0


def test_env_vars_read(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FATE_LLM_URL", "http://gpu-box:5001")
    monkeypatch.setenv("FATE_LLM_FORMAT", "koboldcpp")
    monkeypatch.setenv("FATE_LLM_TIMEOUT", "12.5")
    monkeypatch.setenv("FATE_DATA_DIR", str(tmp_path / "games"))
    settings = load_settings(tmp_path / "missing.env")
    assert settings.llm_url == "http://gpu-box:5001"
    assert settings.llm_format == "koboldcpp"
    assert settings.llm_timeout == 12.5
    assert settings.data_dir == tmp_path / "games"


def test_dotenv_file_loaded(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("FATE_LLM_MODEL=mistral-7b\nFATE_ORACLE_TIMEOUT=30\n")
    settings = load_settings(env_file)
    assert settings.llm_model == "mistral-7b"
    assert settings.oracle_timeout == 30.0


def test_environment_wins_over_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("FATE_LLM_URL=http://from-file:1\n")
    monkeypatch.setenv("FATE_LLM_URL", "http://from-env:2")
    assert load_settings(env_file).llm_url == "http://from-env:2"


def test_unknown_format_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FATE_LLM_FORMAT", "telepathy")
    with pytest.raises(ValidationError):
        load_settings(tmp_path / "missing.env")


def test_factories(tmp_path: Path) -> None:
    settings = Settings(llm_format="openai", data_dir=tmp_path / "data")
    assert isinstance(build_llm(settings), HttpLLM)
    assert isinstance(build_oracle(settings), NarrativeOracle)
    storage = build_storage(settings)
    assert storage.list_games() == []
    assert (tmp_path / "data" / "games").is_dir()
