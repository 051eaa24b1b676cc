"""Anthropic Messages family."""

from __future__ import annotations

from typing import Any

from commit_llm.protocols.base import ProtocolAdapter
from commit_llm.types import CanonicalRequest, ProtocolFamily, TextDelta


class AnthropicMessagesAdapter(ProtocolAdapter):
    """Messages API bodies and ``content_block_delta`` stream events."""

    family = ProtocolFamily.ANTHROPIC_MESSAGES

    def _build_payload(self, req: CanonicalRequest) -> dict[str, Any]:
        # system prompt travels outside the message list for this API
        return {
            "model": req.model,
            "messages": [{"role": "user", "content": req.user_text}],
            "system": req.system_text,
            "max_tokens": req.max_tokens,
            "temperature": req.temperature,
            "stream": req.streaming,
        }

    def extract_deltas(self, record: dict[str, Any]) -> list[TextDelta]:
        if record.get("type") == "content_block_delta":
            delta = record.get("delta")
            if not isinstance(delta, dict):
                return []
            thinking = delta.get("thinking")
            if isinstance(thinking, str) and thinking:
                return [TextDelta(channel="reasoning", text=thinking)]
            text = delta.get("text")
            if isinstance(text, str) and text:
                return [TextDelta(channel="answer", text=text)]
            return []
        # non-streaming Messages response
        if record.get("type") == "message" and isinstance(record.get("content"), list):
            text = "".join(
                block.get("text", "")
                for block in record["content"]
                if isinstance(block, dict) and block.get("type") == "text"
            )
            return [TextDelta(channel="answer", text=text)] if text else []
        return []
