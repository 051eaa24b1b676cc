"""Ollama ``/api/generate`` family."""

from __future__ import annotations

from typing import Any

from commit_llm.protocols.base import ProtocolAdapter
from commit_llm.types import CanonicalRequest, ProtocolFamily, TextDelta


class OllamaGenerateAdapter(ProtocolAdapter):
    """Newline-delimited JSON records carrying a ``response`` fragment."""

    family = ProtocolFamily.OLLAMA_GENERATE

    def _build_payload(self, req: CanonicalRequest) -> dict[str, Any]:
        return {
            "model": req.model,
            "system": req.system_text,
            "prompt": req.user_text,
            "temperature": req.temperature,
            "top_p": req.top_p,
            "max_tokens": req.max_tokens,
            "stream": req.streaming,
        }

    def extract_deltas(self, record: dict[str, Any]) -> list[TextDelta]:
        deltas: list[TextDelta] = []
        # thinking-capable models report reasoning in a separate field
        thinking = record.get("thinking")
        if isinstance(thinking, str) and thinking:
            deltas.append(TextDelta(channel="reasoning", text=thinking))
        response = record.get("response")
        if isinstance(response, str) and response:
            deltas.append(TextDelta(channel="answer", text=response))
        return deltas
