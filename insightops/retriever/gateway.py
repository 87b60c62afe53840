"""
Provider Gateway

One chat-completion capability over interchangeable backends (OpenAI, Groq,
Google Gemini, Anthropic). The backend is chosen once from configuration;
a process never falls through to a second backend for the same request.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..common.config import LLMConfig, resolve_provider
from ..common.errors import ExternalTimeout, ProviderError, ProviderTimeout, QuotaExceeded
from ..common.timeouts import run_with_timeout

logger = logging.getLogger("insightops.retriever.gateway")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# "429" must be a standalone token; ids such as req_4291 are not quota errors
_QUOTA_PATTERN = re.compile(r"\b429\b|RESOURCE_EXHAUSTED|rate[ _]limit", re.IGNORECASE)


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if value is None or callable(value):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def is_quota_error(exc: BaseException) -> bool:
    """True when an SDK exception signals HTTP 429 / resource exhaustion."""
    if _status_of(exc) == 429:
        return True
    return _QUOTA_PATTERN.search(str(exc)) is not None


def classify_provider_error(exc: BaseException, provider: str) -> ProviderError:
    """Translate an SDK exception into QuotaExceeded or ProviderError."""
    if is_quota_error(exc):
        return QuotaExceeded(f"{provider} quota exceeded: {exc}", provider=provider)
    if "timeout" in type(exc).__name__.lower():
        return ProviderTimeout(f"{provider} request timed out: {exc}", provider=provider)
    return ProviderError(f"{provider} request failed: {exc}", provider=provider)


# ============================================================================
# Backends
# ============================================================================

class ChatBackend:
    """A concrete chat-completion backend. ``complete`` is blocking."""

    name = "none"

    def __init__(self, model: str = "", temperature: float = 0.3, max_tokens: int = 512, timeout: float = 30.0):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def is_available(self) -> bool:
        return True

    def complete(self, system: str, user: str) -> str:
        raise NotImplementedError


class NoProvider(ChatBackend):
    """Placeholder when no credential is configured."""

    name = "none"

    @property
    def is_available(self) -> bool:
        return False

    def complete(self, system: str, user: str) -> str:
        raise ProviderError("No AI provider configured", provider=self.name)


class OpenAIBackend(ChatBackend):
    name = "openai"

    def __init__(self, api_key: str, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        from openai import OpenAI

        if base_url:
            self._client = OpenAI(api_key=api_key, base_url=base_url)
        else:
            self._client = OpenAI(api_key=api_key)

    def complete(self, system: str, user: str) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        response = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return (response.choices[0].message.content or "").strip()


class GroqBackend(OpenAIBackend):
    """Groq serves an OpenAI-compatible API."""

    name = "groq"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(api_key, base_url=GROQ_BASE_URL, **kwargs)


class GoogleBackend(ChatBackend):
    name = "google"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._genai = genai
        self._models = {}  # Cache models by system prompt

    def complete(self, system: str, user: str) -> str:
        if system not in self._models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._models[system] = self._genai.GenerativeModel(**kwargs)
        model = self._models[system]
        response = model.generate_content(
            user,
            generation_config={
                "max_output_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
            request_options={"timeout": self.timeout},
        )
        return (response.text or "").strip()


class AnthropicBackend(ChatBackend):
    name = "anthropic"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        import anthropic

        self._client = anthropic.Anthropic(api_key=api_key)

    def complete(self, system: str, user: str) -> str:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
            temperature=self.temperature,
            timeout=self.timeout,
        )
        return response.content[0].text.strip()


_BACKENDS = {
    "openai": OpenAIBackend,
    "groq": GroqBackend,
    "google": GoogleBackend,
    "anthropic": AnthropicBackend,
}


def build_backend(llm: LLMConfig) -> ChatBackend:
    """Resolve the configured provider once and construct its backend."""
    provider = resolve_provider(llm)
    common = {
        "model": llm.model_for(provider),
        "temperature": llm.temperature,
        "max_tokens": llm.max_tokens,
        "timeout": llm.timeout,
    }
    if provider == "none":
        logger.info("No AI provider configured; answers will use basic mode")
        return NoProvider(**common)

    backend = _BACKENDS[provider](llm.api_key_for(provider), **common)
    logger.info("AI provider selected: %s (model=%s)", provider, backend.model)
    return backend


# ============================================================================
# Gateway
# ============================================================================

class ProviderGateway:
    """Async, timeout-bounded facade over one ChatBackend."""

    def __init__(self, backend: ChatBackend, timeout: Optional[float] = None):
        self._backend = backend
        self._timeout = timeout if timeout is not None else backend.timeout

    @classmethod
    def from_config(cls, llm: LLMConfig) -> "ProviderGateway":
        return cls(build_backend(llm), timeout=llm.timeout)

    @property
    def provider(self) -> str:
        return self._backend.name

    @property
    def is_configured(self) -> bool:
        return self._backend.is_available

    async def complete(self, system: str, user: str) -> str:
        """
        Send one system+user exchange and return the assistant text.

        Raises:
            QuotaExceeded: Backend answered with a rate-limit status
            ProviderTimeout: No answer within the timeout
            ProviderError: Any other backend failure
        """
        if not self.is_configured:
            raise ProviderError("No AI provider configured", provider=self.provider)

        try:
            return await run_with_timeout(
                self._backend.complete, system, user,
                timeout=self._timeout, label=f"{self.provider} completion",
            )
        except ExternalTimeout as e:
            raise ProviderTimeout(str(e), provider=self.provider) from e
        except ProviderError:
            raise
        except Exception as e:
            raise classify_provider_error(e, self.provider) from e
