"""OpenAI Chat Completions family (openai, aliyun, tencent, deepseek, siliconflow, volcengine)."""

from __future__ import annotations

import json
from typing import Any

from commit_llm.protocols.base import ProtocolAdapter, first_choice
from commit_llm.types import CanonicalRequest, ProtocolFamily, TextDelta


class OpenAIChatAdapter(ProtocolAdapter):
    """Chat Completions bodies and SSE ``data:`` records."""

    family = ProtocolFamily.OPENAI_CHAT

    def _build_payload(self, req: CanonicalRequest) -> dict[str, Any]:
        return {
            "model": req.model,
            "messages": [
                {"role": "system", "content": req.system_text},
                {"role": "user", "content": req.user_text},
            ],
            "temperature": req.temperature,
            "top_p": req.top_p,
            "max_tokens": req.max_tokens,
            "stream": req.streaming,
        }

    def extract_deltas(self, record: dict[str, Any]) -> list[TextDelta]:
        choice = first_choice(record)
        if not choice:
            return []

        deltas: list[TextDelta] = []
        delta = choice.get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str) and content:
                deltas.append(TextDelta(channel="answer", text=content))
            reasoning = delta.get("reasoning_content")
            if isinstance(reasoning, str) and reasoning:
                deltas.append(TextDelta(channel="reasoning", text=reasoning))

        # Servers that ignore ``stream: true`` send one complete object instead.
        full = self._full_message_text(choice)
        if full:
            deltas.append(TextDelta(channel="answer", text=full))
        return deltas

    @staticmethod
    def _full_message_text(choice: dict[str, Any]) -> str:
        message = choice.get("message")
        if isinstance(message, dict) and message.get("content"):
            content = message["content"]
            if isinstance(content, str):
                return content
            if isinstance(content, dict) and isinstance(content.get("parts"), list):
                return "".join(str(part) for part in content["parts"])
            return json.dumps(content, ensure_ascii=False)
        text = choice.get("text")
        return text if isinstance(text, str) else ""
