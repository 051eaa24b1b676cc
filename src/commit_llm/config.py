"""
Configuration defaults, provider presets and environment-driven settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from typing import TypeVar

from pydantic import BaseModel

from commit_llm.errors import ConfigurationError
from commit_llm.registry import CUSTOM_PROVIDER
from commit_llm.types import ProtocolFamily

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_PROVIDER: str = "aliyun"
DEFAULT_TEMPERATURE: float = 0.7
DEFAULT_TOP_P: float = 1.0
DEFAULT_MAX_TOKENS: int = 2048
DEFAULT_TIMEOUT_SECONDS: float = 60.0

DEFAULT_SYSTEM_PROMPT: str = (
    "You are an assistant that writes Git commit messages following Conventional Commits 1.0.0. "
    "Use this structure: <type>[optional scope][!]: <description>. Types must be one of: feat, fix, "
    "docs, style, refactor, perf, test, build, ci, chore, revert. Keep the subject concise and "
    "imperative. Use lowercase type and scope. Add body and footer only when needed by the changes."
)

DEFAULT_PROMPT_TEMPLATE: str = (
    "Generate a commit message from the following changes using the Conventional Commits 1.0.0 "
    "specification.\nFiles:\n${files}\nDiff:\n${diff}"
)


# ─────────────────────────────────────────────────────────────────────
# PROVIDER PRESETS
# ─────────────────────────────────────────────────────────────────────

class ProviderPreset(BaseModel):
    """Endpoint, model and protocol a provider uses unless overridden."""
    url: str
    model: str
    protocol: ProtocolFamily


PROVIDER_PRESETS: dict[str, ProviderPreset] = {
    "aliyun": ProviderPreset(
        url="https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        model="deepseek-r1-distill-llama-70b",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    "openai": ProviderPreset(
        url="https://api.openai.com/v1/chat/completions",
        model="gpt-4o-mini",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    "ollama": ProviderPreset(
        url="http://localhost:11434/api/generate",
        model="deepseek-r1:7b",
        protocol=ProtocolFamily.OLLAMA_GENERATE,
    ),
    "deepseek": ProviderPreset(
        url="https://api.deepseek.com/v1/chat/completions",
        model="deepseek-chat",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    "anthropic": ProviderPreset(
        url="https://api.anthropic.com/v1/messages",
        model="claude-3-haiku-20240307",
        protocol=ProtocolFamily.ANTHROPIC_MESSAGES,
    ),
    "tencent": ProviderPreset(
        url="https://api.hunyuan.cloud.tencent.com/v1/chat/completions",
        model="hunyuan-lite",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    "siliconflow": ProviderPreset(
        url="https://api.siliconflow.cn/v1/chat/completions",
        model="deepseek-ai/DeepSeek-V3",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    "gemini": ProviderPreset(
        url="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent",
        model="gemini-2.5-flash",
        protocol=ProtocolFamily.GEMINI_GENERATE,
    ),
    "volcengine": ProviderPreset(
        url="https://ark.cn-beijing.volces.com/api/v3/chat/completions",
        model="deepseek-v3-250324",
        protocol=ProtocolFamily.OPENAI_CHAT,
    ),
    CUSTOM_PROVIDER: ProviderPreset(url="", model="", protocol=ProtocolFamily.OPENAI_CHAT),
}

# Provider → vendor environment variable consulted when COMMIT_LLM_API_KEY is unset
ENV_MAP: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "aliyun": "DASHSCOPE_API_KEY",
    "tencent": "HUNYUAN_API_KEY",
    "siliconflow": "SILICONFLOW_API_KEY",
    "volcengine": "ARK_API_KEY",
}


# ─────────────────────────────────────────────────────────────────────
# SETTINGS
# ─────────────────────────────────────────────────────────────────────

class Settings(BaseModel):
    """Resolved configuration for one provider."""
    provider: str = DEFAULT_PROVIDER
    url: str = ""
    model: str = ""
    # only set when the user declared a protocol explicitly
    protocol: str | None = None
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    max_tokens: int = DEFAULT_MAX_TOKENS
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE


def _number(environ: Mapping[str, str], key: str, default: N, cast: Callable[[str], N]) -> N:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %r", key, raw, default)
        return default


def get_api_key(provider: str, environ: Mapping[str, str] | None = None) -> str:
    """Return the API key for ``provider`` from the environment, or ``""``."""
    environ = os.environ if environ is None else environ
    key = environ.get("COMMIT_LLM_API_KEY", "").strip()
    if key:
        return key
    env_name = ENV_MAP.get(provider)
    return environ.get(env_name, "").strip() if env_name else ""


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Load settings from COMMIT_LLM_* environment variables.

    Non-custom providers fill url and model from PROVIDER_PRESETS; the custom
    provider uses only what the user supplied.
    """
    environ = os.environ if environ is None else environ
    provider = environ.get("COMMIT_LLM_PROVIDER", "").strip() or DEFAULT_PROVIDER

    url = environ.get("COMMIT_LLM_URL", "").strip()
    model = environ.get("COMMIT_LLM_MODEL", "").strip()
    protocol = environ.get("COMMIT_LLM_PROTOCOL", "").strip() or None
    if protocol is not None:
        try:
            ProtocolFamily.parse(protocol)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    if provider != CUSTOM_PROVIDER:
        preset = PROVIDER_PRESETS.get(provider)
        if preset is None:
            logger.warning("Provider preset configuration not found for %s", provider)
        else:
            url = url or preset.url
            model = model or preset.model
    if not url:
        logger.warning("LLM url is empty, provider=%s; the protocol's default host is used", provider)

    return Settings(
        provider=provider,
        url=url,
        model=model,
        protocol=protocol,
        api_key=get_api_key(provider, environ),
        temperature=_number(environ, "COMMIT_LLM_TEMPERATURE", DEFAULT_TEMPERATURE, float),
        top_p=_number(environ, "COMMIT_LLM_TOP_P", DEFAULT_TOP_P, float),
        max_tokens=_number(environ, "COMMIT_LLM_MAX_TOKENS", DEFAULT_MAX_TOKENS, int),
        system_prompt=environ.get("COMMIT_LLM_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        prompt_template=environ.get("COMMIT_LLM_PROMPT_TEMPLATE") or DEFAULT_PROMPT_TEMPLATE,
    )


def render_prompt(template: str, files: list[str], diff: str) -> str:
    """Fill the ``${files}`` and ``${diff}`` placeholders."""
    return template.replace("${files}", "\n".join(files)).replace("${diff}", diff)
