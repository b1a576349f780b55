"""Model catalog per backend.

Kept as data so the list can change without touching backend code.
"""

import re
from dataclasses import dataclass

from exa_agent.backends.types import BackendType


@dataclass(frozen=True)
class ModelInfo:
    """A selectable model."""

    id: str
    name: str
    description: str = ""


PROVIDER_MODELS: dict[BackendType, list[ModelInfo]] = {
    BackendType.GROQ: [
        ModelInfo("moonshotai/kimi-k2-instruct", "Kimi K2 Instruct", "Most capable model"),
        ModelInfo("openai/gpt-oss-120b", "GPT OSS 120B", "Fast, capable, and cheap model"),
        ModelInfo("openai/gpt-oss-20b", "GPT OSS 20B", "Fastest and cheapest model"),
        ModelInfo("qwen/qwen3-32b", "Qwen 3 32B"),
        ModelInfo("meta-llama/llama-4-maverick-17b-128e-instruct", "Llama 4 Maverick"),
        ModelInfo("meta-llama/llama-4-scout-17b-16e-instruct", "Llama 4 Scout"),
    ],
    BackendType.OPENAI: [
        ModelInfo("o3-mini", "o3-mini", "Fast reasoning model"),
        ModelInfo("o4-mini", "o4-mini", "Next-generation mini model"),
        ModelInfo("gpt-5", "GPT-5", "Flagship model"),
    ],
    BackendType.AZURE: [
        ModelInfo("o3-mini", "o3-mini", "Fast reasoning model (requires deployment)"),
        ModelInfo("o4-mini", "o4-mini", "Next-generation mini model (requires deployment)"),
        ModelInfo("gpt-5", "GPT-5", "Flagship model (requires deployment)"),
    ],
    BackendType.OPENROUTER: [
        ModelInfo("openai/gpt-oss-120b", "GPT OSS 120B", "Fast, capable model (default)"),
        ModelInfo("openai/gpt-oss-20b", "GPT OSS 20B", "Fastest and cheapest model"),
        ModelInfo("deepseek/deepseek-chat-v3.1", "DeepSeek Chat v3.1", "Advanced reasoning model"),
    ],
    BackendType.OLLAMA: [
        ModelInfo("gemma3:270m", "Gemma 3 270M", "Lightweight Google model (default)"),
        ModelInfo("gpt-oss:20b", "GPT OSS 20B", "Medium-sized capable model"),
        ModelInfo("gpt-oss:120b", "GPT OSS 120B", "Large high-performance model"),
    ],
    BackendType.ANTHROPIC: [
        ModelInfo("claude-sonnet-4-5", "Claude Sonnet 4.5", "Balanced coding model (default)"),
        ModelInfo("claude-opus-4-1", "Claude Opus 4.1", "Most capable model"),
        ModelInfo("claude-haiku-4-5", "Claude Haiku 4.5", "Fastest model"),
    ],
}

DEFAULT_MODELS: dict[BackendType, str] = {
    BackendType.GROQ: "moonshotai/kimi-k2-instruct",
    BackendType.OPENAI: "o3-mini",
    BackendType.AZURE: "o3-mini",
    BackendType.OPENROUTER: "openai/gpt-oss-120b",
    BackendType.OLLAMA: "gemma3:270m",
    BackendType.ANTHROPIC: "claude-sonnet-4-5",
}

# Used when the configured backend fails to initialize at startup
FALLBACK_BACKEND = BackendType.GROQ
FALLBACK_MODEL = DEFAULT_MODELS[FALLBACK_BACKEND]

# o1/o3/o4... reasoning models and gpt-5 reject max_tokens
_COMPLETION_TOKENS_PATTERN = re.compile(r"(^|[/-])o\d(-|$)|gpt-5")


def uses_max_completion_tokens(model: str) -> bool:
    """Return True if ``model`` takes ``max_completion_tokens`` instead of ``max_tokens``."""
    return bool(_COMPLETION_TOKENS_PATTERN.search(model.lower()))


def default_model_for(backend: BackendType) -> str:
    return DEFAULT_MODELS[backend]


def model_ids(backend: BackendType) -> list[str]:
    return [m.id for m in PROVIDER_MODELS.get(backend, [])]
