"""Environment-driven settings.

    FATE_LLM_URL         base URL of the text-generation backend
    FATE_LLM_API_KEY     bearer token, empty when not required
    FATE_LLM_FORMAT      koboldcpp | openai | openai_chat
    FATE_LLM_MODEL       model name for the OpenAI-compatible formats
    FATE_LLM_TIMEOUT     HTTP timeout in seconds
    FATE_ORACLE_TIMEOUT  bound on one whole oracle round trip, in seconds
    FATE_DATA_DIR        directory of the JSON game store

A .env file in the working directory is loaded first; variables already set
in the environment win.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

from fate_engine.llm import HttpLLM, ProviderFormat
from fate_engine.oracle import NarrativeOracle
from fate_engine.storage import Storage


class Settings(BaseModel):
    llm_url: str = "http://localhost:5001"
    llm_api_key: str = ""
    llm_format: ProviderFormat = "openai_chat"
    llm_model: str = ""
    llm_timeout: float = 60.0
    oracle_timeout: float = 90.0
    data_dir: Path = Path("data")


_ENV_FIELDS = {
    "FATE_LLM_URL": "llm_url",
    "FATE_LLM_API_KEY": "llm_api_key",
    "FATE_LLM_FORMAT": "llm_format",
    "FATE_LLM_MODEL": "llm_model",
    "FATE_LLM_TIMEOUT": "llm_timeout",
    "FATE_ORACLE_TIMEOUT": "oracle_timeout",
    "FATE_DATA_DIR": "data_dir",
}


def load_settings(env_file: Path | None = None) -> Settings:
    load_dotenv(env_file or Path(".env"))
    values = {field: os.environ[var] for var, field in _ENV_FIELDS.items() if var in os.environ}
    return Settings.model_validate(values)


def build_llm(settings: Settings) -> HttpLLM:
    return HttpLLM(
        provider_url=settings.llm_url,
        api_key=settings.llm_api_key,
        provider_format=settings.llm_format,
        model=settings.llm_model,
        timeout=settings.llm_timeout,
    )


def build_oracle(settings: Settings) -> NarrativeOracle:
    return NarrativeOracle(build_llm(settings), timeout=settings.oracle_timeout)


def build_storage(settings: Settings) -> Storage:
    return Storage(settings.data_dir)
