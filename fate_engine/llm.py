"""LLM client — HTTP connection to a text-generation backend.

The narrative oracle is handed an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` names the caller (the oracle uses "narrator"). Implementations may
use it for logging or routing; the HTTP client only logs it.

Production code builds an HttpLLM from settings (see fate_engine.config) and
wraps it in a NarrativeOracle. Tests use StubLLM from conftest.py instead.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "openai_chat"]


def _first(data: Any, key: str) -> Any:
    """data[key][0] when the body has that shape, else None."""
    items = data.get(key) if isinstance(data, dict) else None
    return items[0] if isinstance(items, list) and items else None


CHAT_TEMPERATURE = 0.8
CHAT_MAX_TOKENS = 1000


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "koboldcpp"    — POST /api/v1/generate        {"prompt": ...}
                       Response: {"results": [{"text": "..."}]}
      "openai"       — POST /v1/completions         {"model": ..., "prompt": ...}
                       Response: {"choices": [{"text": "..."}]}
      "openai_chat"  — POST /v1/chat/completions    {"model": ..., "messages": [...]}
                       Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai_chat".
        model:           Model identifier for the OpenAI-compatible formats.
        timeout:         HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai_chat",
        model: str = "",
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai_chat":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {
                "messages": [{"role": "user", "content": prompt}],
                "temperature": CHAT_TEMPERATURE,
                "max_tokens": CHAT_MAX_TOKENS,
            }
            if self._model:
                body["model"] = self._model
            return url, body

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt}

    def _parse_response(self, data: Any) -> str:
        """Extract the generated text from the response body."""
        if self._format == "openai_chat":
            choice = _first(data, "choices")
            message = choice.get("message") if isinstance(choice, dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if not isinstance(content, str):
                raise LLMError("Unexpected response format from chat completions backend")
            return content

        if self._format == "openai":
            choice = _first(data, "choices")
            text = choice.get("text") if isinstance(choice, dict) else None
            if not isinstance(text, str):
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return text

        # koboldcpp
        result = _first(data, "results")
        text = result.get("text") if isinstance(result, dict) else None
        if not isinstance(text, str):
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return text

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request to {self._base_url} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
