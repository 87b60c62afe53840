"""
Configuration Management for InsightOps

Loads configuration from ~/.insightops/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger("insightops.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".insightops"
CONFIG_PATH = CONFIG_DIR / "config.json"
STORE_PATH = CONFIG_DIR / "store.json"

# Backends that can serve chat completions, in credential precedence order
PROVIDER_PRECEDENCE = ("openai", "groq", "google", "anthropic")
VALID_PROVIDERS = PROVIDER_PRECEDENCE + ("auto", "none")

# Embedding model used when none is configured, per embedding mode
DEFAULT_EMBEDDING_MODELS = {
    "femb": "sentence-transformers/all-MiniLM-L6-v2",
    "openai": "text-embedding-3-small",
}


def _default_weights() -> Dict[str, float]:
    return {"freshness": 0.25, "contradiction": 0.40, "version_drift": 0.35}


def _default_validity_days() -> Dict[str, int]:
    return {
        "policy": 365,
        "procedure": 180,
        "guideline": 365,
        "faq": 90,
        "report": 90,
        "contract": 365,
        "meeting_notes": 30,
        "default": 180,
    }


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "femb"  # fastembed (on-device) | openai
    model: str = ""  # empty: default model for the mode
    timeout: float = 15.0

    def resolved_model(self) -> str:
        mode = (self.mode or "femb").lower()
        return self.model or DEFAULT_EMBEDDING_MODELS.get(mode, DEFAULT_EMBEDDING_MODELS["femb"])


@dataclass
class LLMConfig:
    """Chat provider configuration; exactly one backend serves a process"""
    provider: str = "auto"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-haiku-4-5-20251001"
    temperature: float = 0.3
    max_tokens: int = 512
    timeout: float = 30.0

    def api_key_for(self, provider: str) -> str:
        return getattr(self, f"{provider}_api_key", "") or ""

    def model_for(self, provider: str) -> str:
        return getattr(self, f"{provider}_model", "") or ""


@dataclass
class RetrieverConfig:
    """Retriever and context builder configuration"""
    topk: int = 5
    min_similarity: float = 0.1
    excerpt_chars: int = 300
    context_char_budget: int = 6000


@dataclass
class ResponderConfig:
    """Question-answering orchestration configuration"""
    stale_after_days: int = 30
    quota_cooldown_minutes: int = 30
    cache_max_entries: int = 512
    cache_ttl_seconds: int = 3600
    max_sources: int = 3


@dataclass
class DecayConfig:
    """Decay scoring configuration"""
    weights: Dict[str, float] = field(default_factory=_default_weights)
    activation_threshold: float = 0.2
    related_similarity_threshold: float = 0.75
    drift_threshold: float = 0.3
    validity_days: Dict[str, int] = field(default_factory=_default_validity_days)

    def validity_for(self, doc_type: str) -> int:
        key = (doc_type or "").strip().lower().replace(" ", "_")
        return self.validity_days.get(key, self.validity_days.get("default", 180))


@dataclass
class StoreConfig:
    """Document store configuration"""
    path: str = str(STORE_PATH)
    timeout: float = 10.0


@dataclass
class InsightOpsConfig:
    """Main InsightOps configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    responder: ResponderConfig = field(default_factory=ResponderConfig)
    decay: DecayConfig = field(default_factory=DecayConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def resolve_provider(llm: LLMConfig) -> str:
    """
    Resolve the configured provider to one concrete backend name or "none".

    "auto" picks the first backend with a credential (OpenAI, Groq, Gemini,
    Anthropic). An explicit backend without its key resolves to "none".
    """
    provider = (llm.provider or "auto").lower()

    if provider == "auto":
        for candidate in PROVIDER_PRECEDENCE:
            if llm.api_key_for(candidate):
                return candidate
        return "none"

    if provider == "none":
        return "none"

    if provider not in PROVIDER_PRECEDENCE:
        logger.warning("Unsupported LLM provider: %s", provider)
        return "none"

    if not llm.api_key_for(provider):
        logger.info("%s API key not provided, running without AI provider", provider)
        return "none"

    return provider


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "femb"),
        model=embedding_data.get("model", ""),
        timeout=float(embedding_data.get("timeout", 15.0)),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        groq_api_key=llm_data.get("groq_api_key", ""),
        groq_model=llm_data.get("groq_model", defaults.groq_model),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        temperature=float(llm_data.get("temperature", defaults.temperature)),
        max_tokens=int(llm_data.get("max_tokens", defaults.max_tokens)),
        timeout=float(llm_data.get("timeout", defaults.timeout)),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        topk=retriever_data.get("topk", 5),
        min_similarity=retriever_data.get("min_similarity", 0.1),
        excerpt_chars=retriever_data.get("excerpt_chars", 300),
        context_char_budget=retriever_data.get("context_char_budget", 6000),
    )


def _parse_responder_config(data: dict) -> ResponderConfig:
    """Parse responder section from config dict"""
    responder_data = data.get("responder", {})
    return ResponderConfig(
        stale_after_days=responder_data.get("stale_after_days", 30),
        quota_cooldown_minutes=responder_data.get("quota_cooldown_minutes", 30),
        cache_max_entries=responder_data.get("cache_max_entries", 512),
        cache_ttl_seconds=responder_data.get("cache_ttl_seconds", 3600),
        max_sources=responder_data.get("max_sources", 3),
    )


def _parse_decay_config(data: dict) -> DecayConfig:
    """Parse decay section; partial weight/validity maps merge over defaults"""
    decay_data = data.get("decay", {})
    weights = _default_weights()
    weights.update(decay_data.get("weights", {}))
    validity_days = _default_validity_days()
    validity_days.update(decay_data.get("validity_days", {}))
    return DecayConfig(
        weights=weights,
        activation_threshold=decay_data.get("activation_threshold", 0.2),
        related_similarity_threshold=decay_data.get("related_similarity_threshold", 0.75),
        drift_threshold=decay_data.get("drift_threshold", 0.3),
        validity_days=validity_days,
    )


def _parse_store_config(data: dict) -> StoreConfig:
    """Parse store section from config dict"""
    store_data = data.get("store", {})
    return StoreConfig(
        path=store_data.get("path", str(STORE_PATH)),
        timeout=float(store_data.get("timeout", 10.0)),
    )


def load_config() -> InsightOpsConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.insightops/config.json)
    3. Default values
    """
    config = InsightOpsConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retriever = _parse_retriever_config(data)
            config.responder = _parse_responder_config(data)
            config.decay = _parse_decay_config(data)
            config.store = _parse_store_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("INSIGHTOPS_STORE_PATH"):
        config.store.path = os.getenv("INSIGHTOPS_STORE_PATH")
    if os.getenv("INSIGHTOPS_LLM_TIMEOUT"):
        config.llm.timeout = float(os.getenv("INSIGHTOPS_LLM_TIMEOUT"))

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GROQ_API_KEY": "groq_api_key",
        "GROQ_MODEL": "groq_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GEMINI_MODEL": "google_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "INSIGHTOPS_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: InsightOpsConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "groq_api_key": config.llm.groq_api_key,
        "groq_model": config.llm.groq_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "temperature": config.llm.temperature,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("openai_api_key", "groq_api_key", "google_api_key", "anthropic_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
            "timeout": config.embedding.timeout,
        },
        "llm": llm_section,
        "retriever": {
            "topk": config.retriever.topk,
            "min_similarity": config.retriever.min_similarity,
            "excerpt_chars": config.retriever.excerpt_chars,
            "context_char_budget": config.retriever.context_char_budget,
        },
        "responder": {
            "stale_after_days": config.responder.stale_after_days,
            "quota_cooldown_minutes": config.responder.quota_cooldown_minutes,
            "cache_max_entries": config.responder.cache_max_entries,
            "cache_ttl_seconds": config.responder.cache_ttl_seconds,
            "max_sources": config.responder.max_sources,
        },
        "decay": {
            "weights": dict(config.decay.weights),
            "activation_threshold": config.decay.activation_threshold,
            "related_similarity_threshold": config.decay.related_similarity_threshold,
            "drift_threshold": config.decay.drift_threshold,
            "validity_days": dict(config.decay.validity_days),
        },
        "store": {
            "path": config.store.path,
            "timeout": config.store.timeout,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
