"""Gemini ``generateContent`` family."""

from __future__ import annotations

from typing import Any

from commit_llm.protocols.base import ProtocolAdapter
from commit_llm.types import CanonicalRequest, ProtocolFamily


class GeminiGenerateAdapter(ProtocolAdapter):
    """Request/response protocol: the whole body is one JSON document."""

    family = ProtocolFamily.GEMINI_GENERATE
    whole_document = True

    def _build_payload(self, req: CanonicalRequest) -> dict[str, Any]:
        return {
            "contents": [
                {"parts": [{"text": f"{req.system_text}\n\n{req.user_text}"}]},
            ]
        }

    def extract_document_text(self, document: Any) -> str | None:
        try:
            text = document["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) else None
