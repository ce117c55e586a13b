"""
LLM client abstraction supporting Anthropic Claude, local Ollama models and
any OpenAI-compatible ``/chat/completions`` endpoint.

Provides graceful degradation when providers are unavailable: every
transport or HTTP failure surfaces as ``LLMUnavailableError`` carrying the
HTTP status when there was one, so callers can tell retryable server
errors from client errors. Ollama connects via ``host.docker.internal``
when running inside Docker, falling back to ``localhost`` for native
execution.
"""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass


class LLMUnavailableError(Exception):
    """Raised when a provider is missing, unreachable or returns an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Transport failures and 5xx responses are worth another attempt."""
        return self.status_code is None or self.status_code >= 500


@dataclass
class LLMResponse:
    """Response from an LLM API call."""

    text: str
    model: str
    input_tokens: int
    output_tokens: int


DEFAULT_TIMEOUT = 300.0


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class LLMClient(ABC):
    """Common interface for LLM providers."""

    provider: str  # "anthropic", "ollama" or "openai"
    model: str

    @abstractmethod
    def complete(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse: ...


def _post_json(url: str, payload: dict, headers: dict[str, str], timeout: float) -> dict:
    """POST a JSON body and decode the JSON reply.

    Raises:
        LLMUnavailableError: On any HTTP or transport failure.
    """
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except urllib.error.HTTPError as e:
        raise LLMUnavailableError(f"{url} returned HTTP {e.code}: {e.reason}", status_code=e.code)
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise LLMUnavailableError(f"Request to {url} failed: {e}")


# ---------------------------------------------------------------------------
# Anthropic (Claude)
# ---------------------------------------------------------------------------

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-20250514"


class ClaudeClient(LLMClient):
    """Thin wrapper around ``anthropic.Anthropic``."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_CLAUDE_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        resolved_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not resolved_key:
            raise LLMUnavailableError(
                "ANTHROPIC_API_KEY not set. Set the environment variable or pass api_key to enable LLM features."
            )

        try:
            import anthropic
        except ImportError:
            raise LLMUnavailableError(
                "The 'anthropic' package is not installed. Run: pip install anthropic"
            )

        self._anthropic = anthropic
        self._client = anthropic.Anthropic(api_key=resolved_key, timeout=timeout, max_retries=0)
        self.model = model

    @staticmethod
    def is_available() -> bool:
        """Return True if the Anthropic SDK is installed and an API key is set."""
        if not os.environ.get("ANTHROPIC_API_KEY"):
            return False
        try:
            import anthropic  # noqa: F401
            return True
        except ImportError:
            return False

    def complete(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=messages,
            )
        except self._anthropic.APIStatusError as e:
            raise LLMUnavailableError(f"Anthropic API error: {e}", status_code=e.status_code)
        except self._anthropic.APIConnectionError as e:
            raise LLMUnavailableError(f"Anthropic connection failed: {e}")

        text = response.content[0].text if response.content else ""
        return LLMResponse(
            text=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Ollama (local models)
# ---------------------------------------------------------------------------

DEFAULT_OLLAMA_MODEL = "gemma3:27b"

# Inside Docker, reach the host's Ollama via host.docker.internal.
# Native runs use localhost.
_OLLAMA_HOST_DOCKER = "http://host.docker.internal:11434"
_OLLAMA_HOST_LOCAL = "http://localhost:11434"


def _ollama_base_url() -> str:
    """Determine the Ollama base URL, preferring explicit env var."""
    explicit = os.environ.get("OLLAMA_HOST")
    if explicit:
        # Ensure it has a scheme
        if not explicit.startswith("http"):
            explicit = f"http://{explicit}"
        return explicit
    if os.environ.get("DOCKER_CONTAINER") or os.path.exists("/.dockerenv"):
        return _OLLAMA_HOST_DOCKER
    return _OLLAMA_HOST_LOCAL


class OllamaClient(LLMClient):
    """Client for locally-running Ollama models.

    No API key required. Connects to Ollama's HTTP API.
    """

    provider = "ollama"

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.model = model
        self.base_url = base_url or _ollama_base_url()
        self.timeout = timeout

    @staticmethod
    def is_available(base_url: str | None = None) -> bool:
        """Check if Ollama is reachable."""
        url = (base_url or _ollama_base_url()) + "/api/tags"
        try:
            req = urllib.request.Request(url, method="GET")
            with urllib.request.urlopen(req, timeout=3) as resp:
                return resp.status == 200
        except (urllib.error.URLError, OSError):
            return False

    @staticmethod
    def list_models(base_url: str | None = None) -> list[str]:
        """Return names of locally available Ollama models."""
        url = (base_url or _ollama_base_url()) + "/api/tags"
        try:
            req = urllib.request.Request(url, method="GET")
            with urllib.request.urlopen(req, timeout=5) as resp:
                data = json.loads(resp.read().decode())
                return [m["name"] for m in data.get("models", [])]
        except (urllib.error.URLError, OSError, ValueError, KeyError):
            return []

    def complete(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        ollama_messages = [{"role": "system", "content": system}]
        for msg in messages:
            ollama_messages.append({"role": msg["role"], "content": msg["content"]})

        data = _post_json(
            self.base_url + "/api/chat",
            {
                "model": self.model,
                "messages": ollama_messages,
                "stream": False,
                "options": {"num_predict": max_tokens, "temperature": temperature},
            },
            headers={},
            timeout=self.timeout,
        )

        text = data.get("message", {}).get("content", "")
        # Ollama provides token counts in different fields
        input_tokens = data.get("prompt_eval_count", 0) or 0
        output_tokens = data.get("eval_count", 0) or 0

        return LLMResponse(
            text=text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


# ---------------------------------------------------------------------------
# OpenAI-compatible (Open WebUI, vLLM, LM Studio, ...)
# ---------------------------------------------------------------------------

DEFAULT_OPENAI_BASE_URL = "http://localhost:8080/api"


class OpenAICompatibleClient(LLMClient):
    """Client for any server exposing ``POST {base_url}/chat/completions``."""

    provider = "openai"

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.model = model
        self.base_url = (
            base_url or os.environ.get("AXIOM_LLM_BASE_URL") or DEFAULT_OPENAI_BASE_URL
        ).rstrip("/")
        self.api_key = api_key or os.environ.get("AXIOM_LLM_API_KEY")
        self.timeout = timeout

    def complete(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        data = _post_json(
            self.base_url + "/chat/completions",
            {
                "model": self.model,
                "messages": [{"role": "system", "content": system}, *messages],
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            headers=headers,
            timeout=self.timeout,
        )

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise LLMUnavailableError("Malformed chat completion payload", status_code=502)
        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            model=data.get("model", self.model),
            input_tokens=usage.get("prompt_tokens", 0) or 0,
            output_tokens=usage.get("completion_tokens", 0) or 0,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

PROVIDERS = ("anthropic", "ollama", "openai")


def create_client(
    provider: str = "ollama",
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> LLMClient:
    """Create an LLM client for the specified provider.

    Parameters
    ----------
    provider : str
        ``"anthropic"``, ``"ollama"`` or ``"openai"``.
    model : str | None
        Model name. Defaults to provider-specific default.
    api_key : str | None
        API key (Anthropic and OpenAI-compatible only).
    base_url : str | None
        Override the Ollama or OpenAI-compatible base URL.
    timeout : float
        Per-request ceiling in seconds.
    """
    if provider == "anthropic":
        return ClaudeClient(api_key=api_key, model=model or DEFAULT_CLAUDE_MODEL, timeout=timeout)
    elif provider == "ollama":
        return OllamaClient(model=model or DEFAULT_OLLAMA_MODEL, base_url=base_url, timeout=timeout)
    elif provider == "openai":
        return OpenAICompatibleClient(
            model=model or DEFAULT_OLLAMA_MODEL, base_url=base_url, api_key=api_key, timeout=timeout,
        )
    else:
        raise ValueError(f"Unknown provider: {provider!r}. Use one of {PROVIDERS}.")
