"""Protocol family adapters for commit_llm."""

from commit_llm.errors import ResolutionError
from commit_llm.types import ProtocolFamily

from .anthropic_messages import AnthropicMessagesAdapter
from .base import ProtocolAdapter, build_headers, redact_headers
from .gemini_generate import GeminiGenerateAdapter
from .ollama_generate import OllamaGenerateAdapter
from .openai_chat import OpenAIChatAdapter

ADAPTERS: dict[ProtocolFamily, ProtocolAdapter] = {
    adapter.family: adapter
    for adapter in (
        OpenAIChatAdapter(),
        OllamaGenerateAdapter(),
        GeminiGenerateAdapter(),
        AnthropicMessagesAdapter(),
    )
}


def get_adapter(family: ProtocolFamily) -> ProtocolAdapter:
    """Return the adapter for ``family``."""
    try:
        return ADAPTERS[family]
    except KeyError as exc:
        raise ResolutionError(f"No adapter for protocol family '{family}'") from exc


__all__ = [
    "ADAPTERS",
    "ProtocolAdapter",
    "OpenAIChatAdapter",
    "OllamaGenerateAdapter",
    "GeminiGenerateAdapter",
    "AnthropicMessagesAdapter",
    "build_headers",
    "get_adapter",
    "redact_headers",
]
