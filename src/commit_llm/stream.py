"""Incremental parsing of vendor response streams.

Bytes from the transport go through three steps, all driven synchronously per
chunk:

* :class:`StreamDemultiplexer` splits chunks into JSON records and asks the
  protocol adapter for the text deltas each record carries.
* :class:`SegmentClassifier` routes answer deltas between the thinking and answer
  channels (``<think>...</think>`` markup) and publishes both to live slots.
* :func:`resolve_completion` turns the final :class:`StreamState` into the answer
  text or raises a :class:`~commit_llm.errors.CompletionError`.

The state is an explicit value owned by the caller, so each step can be driven
without a transport.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from commit_llm.errors import EmptyResultError, RecordParseError, TerminalParseError
from commit_llm.live import LiveSlot
from commit_llm.protocols.base import ProtocolAdapter
from commit_llm.types import TextDelta

logger = logging.getLogger(__name__)

OPEN_MARKER = "<think>"
CLOSE_MARKER = "</think>"
STATUS_WIDTH = 30

_LEADING_NEWLINES = re.compile(r"^\n+")
_FENCE_OPENER = re.compile(r"^```[a-z0-9]+\n")
_FINAL_FENCES = re.compile(r"^```[a-zA-Z0-9]*\n|```")


@dataclass
class StreamState:
    """Mutable parse state for exactly one in-flight request."""

    answer_text: str = ""
    thinking_text: str = ""
    is_thinking: bool = False
    # set once the close marker is seen; thinking mode never re-opens afterwards
    thinking_closed: bool = False
    raw_bytes: bytearray = field(default_factory=bytearray)
    pending_line: bytes = b""
    vendor_error: str | None = None
    record_count: int = 0
    skipped_records: int = 0


def clean_answer(text: str) -> str:
    """Trim ``text`` and drop a leading fence opener and every fence marker."""
    return _FINAL_FENCES.sub("", text.strip()).strip()


class StreamDemultiplexer:
    """Turn raw byte chunks into text deltas for one protocol family."""

    def __init__(self, adapter: ProtocolAdapter) -> None:
        self.adapter = adapter

    def feed(self, state: StreamState, chunk: bytes) -> list[TextDelta]:
        """Consume one chunk and return the deltas of every record it completes."""
        if self.adapter.whole_document:
            state.raw_bytes.extend(chunk)
            return []

        lines = (state.pending_line + chunk).split(b"\n")
        # the last piece has no terminator yet; keep it for the next chunk
        state.pending_line = lines.pop()
        return self._parse_lines(state, lines)

    def finish(self, state: StreamState) -> list[TextDelta]:
        """Flush a trailing record that arrived without a final newline."""
        if self.adapter.whole_document or not state.pending_line:
            return []
        tail, state.pending_line = state.pending_line, b""
        return self._parse_lines(state, [tail])

    def _parse_lines(self, state: StreamState, lines: list[bytes]) -> list[TextDelta]:
        deltas: list[TextDelta] = []
        for raw_line in lines:
            line = raw_line.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            # drop SSE framing such as "data: "; lines like "data: [DONE]" carry no record
            start = line.find("{")
            if start == -1:
                continue
            try:
                record = json.loads(line[start:])
            except json.JSONDecodeError as exc:
                self._skip(state, RecordParseError(line, exc.msg))
                continue
            if not isinstance(record, dict):
                self._skip(state, RecordParseError(line, "not a JSON object"))
                continue

            state.record_count += 1
            vendor_error = self.adapter.extract_error(record)
            if vendor_error:
                state.vendor_error = vendor_error
            deltas.extend(self.adapter.extract_deltas(record))
        return deltas

    def _skip(self, state: StreamState, error: RecordParseError) -> None:
        state.skipped_records += 1
        logger.debug("%s", error)


class SegmentClassifier:
    """State machine separating ``<think>`` reasoning from the answer text."""

    def __init__(
        self,
        answer_slot: LiveSlot | None = None,
        status_slot: LiveSlot | None = None,
        *,
        open_marker: str = OPEN_MARKER,
        close_marker: str = CLOSE_MARKER,
        status_width: int = STATUS_WIDTH,
    ) -> None:
        self.answer_slot = answer_slot if answer_slot is not None else LiveSlot()
        self.status_slot = status_slot if status_slot is not None else LiveSlot()
        self.open_marker = open_marker
        self.close_marker = close_marker
        self.status_width = status_width

    def feed(self, state: StreamState, delta: TextDelta) -> None:
        if delta.channel == "reasoning":
            self._feed_reasoning(state, delta.text)
        else:
            self._feed_answer(state, delta.text)

    def feed_all(self, state: StreamState, deltas: list[TextDelta]) -> None:
        for delta in deltas:
            self.feed(state, delta)

    def _feed_answer(self, state: StreamState, text: str) -> None:
        if state.is_thinking:
            # keep the status line on one line
            state.thinking_text += _LEADING_NEWLINES.sub(" ", text)
        else:
            if state.answer_text == "":
                text = _LEADING_NEWLINES.sub("", text)
            else:
                text = _FENCE_OPENER.sub("", text, count=1).replace("```", "")
            state.answer_text += text

        # Only a marker at the very start of the answer opens thinking mode.
        if (
            not state.is_thinking
            and not state.thinking_closed
            and state.answer_text.startswith(self.open_marker)
        ):
            state.thinking_text = state.answer_text[len(self.open_marker):]
            state.answer_text = ""
            state.is_thinking = True

        if state.is_thinking:
            self._close_thinking(state)

        if state.is_thinking:
            self.status_slot.put(state.thinking_text)
            if len(state.thinking_text) > self.status_width:
                state.thinking_text = ""
        else:
            self.answer_slot.put(state.answer_text)

    def _close_thinking(self, state: StreamState) -> None:
        index = state.thinking_text.find(self.close_marker)
        if index == -1:
            return
        trailing = state.thinking_text[index + len(self.close_marker):]
        state.thinking_text = state.thinking_text[:index]
        state.answer_text = _LEADING_NEWLINES.sub("", trailing)
        state.is_thinking = False
        state.thinking_closed = True

    def _feed_reasoning(self, state: StreamState, text: str) -> None:
        if len(state.thinking_text) > self.status_width:
            state.thinking_text = ""
        state.thinking_text += text.replace("\n", " ")
        self.status_slot.put(state.thinking_text)


def resolve_completion(adapter: ProtocolAdapter, state: StreamState) -> str:
    """Return the final answer for a finished stream, or raise."""
    label = adapter.family.value
    if adapter.whole_document:
        try:
            document = json.loads(bytes(state.raw_bytes).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TerminalParseError(f"{label} response parse error: {exc}") from exc
        text = adapter.extract_document_text(document)
        if text and text.strip():
            return clean_answer(text)
        message = adapter.extract_error(document) or "No valid response data received"
        raise TerminalParseError(f"{label} API error: {message}")

    answer = clean_answer(state.answer_text)
    if not answer:
        logger.debug(
            "Stream ended without answer text (records=%d skipped=%d thinking=%s)",
            state.record_count,
            state.skipped_records,
            state.is_thinking,
        )
        raise EmptyResultError(state.vendor_error)
    return answer


class CompletionStream:
    """Demultiplexer and classifier wired together for one protocol adapter."""

    def __init__(self, adapter: ProtocolAdapter, classifier: SegmentClassifier | None = None) -> None:
        self.adapter = adapter
        self.demultiplexer = StreamDemultiplexer(adapter)
        self.classifier = classifier if classifier is not None else SegmentClassifier()

    def feed(self, state: StreamState, chunk: bytes) -> None:
        """Process one transport chunk completely."""
        self.classifier.feed_all(state, self.demultiplexer.feed(state, chunk))

    def close(self, state: StreamState) -> str:
        """Flush pending bytes and resolve the final answer."""
        self.classifier.feed_all(state, self.demultiplexer.finish(state))
        return resolve_completion(self.adapter, state)
