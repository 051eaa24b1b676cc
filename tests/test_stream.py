import json
import random
import unittest

from commit_llm.errors import EmptyResultError, TerminalParseError
from commit_llm.live import LiveSlot
from commit_llm.protocols import (
    AnthropicMessagesAdapter,
    GeminiGenerateAdapter,
    OllamaGenerateAdapter,
    OpenAIChatAdapter,
)
from commit_llm.stream import (
    CompletionStream,
    SegmentClassifier,
    StreamDemultiplexer,
    StreamState,
    clean_answer,
    resolve_completion,
)
from commit_llm.types import TextDelta


def openai_sse(*contents: str, reasoning: tuple[str, ...] = ()) -> bytes:
    lines = []
    for text in reasoning:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"reasoning_content": text}}]}))
    for text in contents:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": text}}]}, ensure_ascii=False))
    lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")


def ollama_ndjson(*responses: str) -> bytes:
    records = [json.dumps({"response": text, "done": False}, ensure_ascii=False) for text in responses]
    records.append(json.dumps({"response": "", "done": True}))
    # no trailing newline after the last record
    return "\n".join(records).encode("utf-8")


def split_at(data: bytes, cuts: list[int]) -> list[bytes]:
    bounds = [0, *sorted(cuts), len(data)]
    return [data[a:b] for a, b in zip(bounds, bounds[1:])]


def run_chunks(adapter, chunks: list[bytes], classifier: SegmentClassifier | None = None) -> str:
    stream = CompletionStream(adapter, classifier)
    state = StreamState()
    for chunk in chunks:
        stream.feed(state, chunk)
    return stream.close(state)


def classify(*texts: str, classifier: SegmentClassifier | None = None) -> StreamState:
    classifier = classifier or SegmentClassifier()
    state = StreamState()
    for text in texts:
        classifier.feed(state, TextDelta(text=text))
    return state


class SegmentClassifierTests(unittest.TestCase):
    def test_marker_split_across_deltas(self) -> None:
        state = classify("<thi", "nk>reasoning here</thi", "nk>answer")
        self.assertEqual(state.answer_text, "answer")
        self.assertEqual(state.thinking_text, "reasoning here")
        self.assertFalse(state.is_thinking)
        self.assertEqual(resolve_completion(OpenAIChatAdapter(), state), "answer")

    def test_thinking_text_never_reaches_answer_slot(self) -> None:
        published: list[str] = []
        classifier = SegmentClassifier(LiveSlot(on_write=published.append))
        state = classify("<think>", "plan the", " change", "</think>", "\n\nfeat: add", " parser", classifier=classifier)

        self.assertEqual(state.answer_text, "feat: add parser")
        for text in published:
            self.assertNotIn("<think>", text)
            self.assertNotIn("plan", text)
        self.assertEqual(classifier.answer_slot.peek(), "feat: add parser")

    def test_everything_after_close_stays_in_answer(self) -> None:
        state = classify("<think>a</think>", "<think>b")
        self.assertFalse(state.is_thinking)
        self.assertTrue(state.thinking_closed)
        self.assertEqual(state.answer_text, "<think>b")

    def test_marker_after_answer_text_is_not_a_mode_switch(self) -> None:
        state = classify("feat: x", " <think>y</think>")
        self.assertFalse(state.is_thinking)
        self.assertEqual(state.answer_text, "feat: x <think>y</think>")

    def test_whole_thinking_block_in_one_delta(self) -> None:
        state = classify("\n<think>short</think>\n\nfix: typo")
        self.assertEqual(state.answer_text, "fix: typo")
        self.assertEqual(state.thinking_text, "short")

    def test_thinking_newlines_become_a_space(self) -> None:
        state = classify("<think>", "\n\nstep")
        self.assertTrue(state.is_thinking)
        self.assertEqual(state.thinking_text, " step")

    def test_status_display_resets_past_threshold(self) -> None:
        status = LiveSlot()
        classifier = SegmentClassifier(status_slot=status)
        state = classify("<think>", "x" * 31, classifier=classifier)
        self.assertEqual(status.peek(), "x" * 31)
        self.assertEqual(state.thinking_text, "")
        self.assertTrue(state.is_thinking)

    def test_first_delta_loses_leading_newlines_later_deltas_lose_fences(self) -> None:
        state = classify("\n\nfeat: add", "```python\n body", "\n```")
        self.assertEqual(state.answer_text, "feat: add body\n")

    def test_reasoning_channel_only_updates_status(self) -> None:
        classifier = SegmentClassifier()
        state = StreamState()
        classifier.feed(state, TextDelta(channel="reasoning", text="line1\nline2"))
        self.assertEqual(classifier.status_slot.peek(), "line1 line2")
        self.assertEqual(state.answer_text, "")
        self.assertFalse(state.is_thinking)
        self.assertIsNone(classifier.answer_slot.peek())


class StreamDemultiplexerTests(unittest.TestCase):
    def test_sse_framing_is_stripped(self) -> None:
        demux = StreamDemultiplexer(OpenAIChatAdapter())
        state = StreamState()
        deltas = demux.feed(state, openai_sse("feat", ": x"))
        self.assertEqual([d.text for d in deltas], ["feat", ": x"])
        self.assertEqual(state.record_count, 2)

    def test_malformed_line_is_skipped_not_fatal(self) -> None:
        demux = StreamDemultiplexer(OpenAIChatAdapter())
        state = StreamState()
        with self.assertLogs("commit_llm.stream", level="DEBUG"):
            deltas = demux.feed(state, b"data: {not json}\n" + openai_sse("ok"))
        self.assertEqual([d.text for d in deltas], ["ok"])
        self.assertEqual(state.skipped_records, 1)

    def test_partial_record_waits_for_rest_of_line(self) -> None:
        demux = StreamDemultiplexer(OllamaGenerateAdapter())
        state = StreamState()
        self.assertEqual(demux.feed(state, b'{"respon'), [])
        self.assertEqual([d.text for d in demux.feed(state, b'se": "hi"}\n')], ["hi"])
        self.assertEqual(state.pending_line, b"")

    def test_finish_flushes_unterminated_record(self) -> None:
        demux = StreamDemultiplexer(OllamaGenerateAdapter())
        state = StreamState()
        demux.feed(state, b'{"response": "last"}')
        self.assertEqual([d.text for d in demux.finish(state)], ["last"])

    def test_whole_document_family_buffers_until_end(self) -> None:
        demux = StreamDemultiplexer(GeminiGenerateAdapter())
        state = StreamState()
        self.assertEqual(demux.feed(state, b'{"candidates": [\n'), [])
        self.assertEqual(demux.feed(state, b"]}"), [])
        self.assertEqual(bytes(state.raw_bytes), b'{"candidates": [\n]}')

    def test_vendor_error_is_remembered(self) -> None:
        demux = StreamDemultiplexer(OllamaGenerateAdapter())
        state = StreamState()
        demux.feed(state, b'{"error": "model \\"x\\" not found"}\n')
        self.assertEqual(state.vendor_error, 'model "x" not found')


class FragmentationTests(unittest.TestCase):
    def assert_fragmentation_invariant(self, adapter, payload: bytes, expected: str) -> None:
        self.assertEqual(run_chunks(adapter, [payload]), expected)
        rng = random.Random(1234)
        for size in (1, 2, 3, 5, 7, 16, 64):
            with self.subTest(size=size):
                cuts = list(range(size, len(payload), size))
                self.assertEqual(run_chunks(adapter, split_at(payload, cuts)), expected)
        for attempt in range(25):
            with self.subTest(attempt=attempt):
                cuts = rng.sample(range(1, len(payload)), k=min(12, len(payload) - 1))
                self.assertEqual(run_chunks(adapter, split_at(payload, cuts)), expected)

    def test_openai_stream_with_thinking(self) -> None:
        payload = openai_sse("<thi", "nk>reasoning here</thi", "nk>\n\nfeat(解析): ", "支持 ", "markers")
        self.assert_fragmentation_invariant(OpenAIChatAdapter(), payload, "feat(解析): 支持 markers")

    def test_ollama_stream(self) -> None:
        payload = ollama_ndjson("<think>", "\nhmm", "</think>", "\n\nfix: ", "handle ", "```", "eof")
        self.assert_fragmentation_invariant(OllamaGenerateAdapter(), payload, "fix: handle eof")

    def test_anthropic_stream(self) -> None:
        events = [
            ("message_start", {"type": "message_start", "message": {"id": "m"}}),
            ("content_block_delta", {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "docs: "}}),
            ("content_block_delta", {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "readme"}}),
            ("message_stop", {"type": "message_stop"}),
        ]
        payload = "".join(f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events).encode()
        self.assert_fragmentation_invariant(AnthropicMessagesAdapter(), payload, "docs: readme")


class ResolveCompletionTests(unittest.TestCase):
    def test_gemini_success_is_trimmed_and_unfenced(self) -> None:
        document = {"candidates": [{"content": {"parts": [{"text": "\n```text\nfeat: gemini\n```\n"}]}}]}
        result = run_chunks(GeminiGenerateAdapter(), [json.dumps(document).encode()])
        self.assertEqual(result, "feat: gemini")

    def test_gemini_error_field_is_terminal(self) -> None:
        document = {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}
        with self.assertRaises(TerminalParseError) as ctx:
            run_chunks(GeminiGenerateAdapter(), [json.dumps(document).encode()])
        self.assertIn("API key not valid", ctx.exception.message)
        self.assertEqual(ctx.exception.to_failure().kind, "terminal_parse")

    def test_gemini_malformed_document(self) -> None:
        with self.assertRaises(TerminalParseError):
            run_chunks(GeminiGenerateAdapter(), [b'{"candidates": ['])

    def test_gemini_empty_text_is_not_success(self) -> None:
        document = {"candidates": [{"content": {"parts": [{"text": "   "}]}}]}
        with self.assertRaises(TerminalParseError):
            run_chunks(GeminiGenerateAdapter(), [json.dumps(document).encode()])

    def test_thinking_only_stream_is_empty_result(self) -> None:
        payload = openai_sse("<think>", "still thinking")
        with self.assertRaises(EmptyResultError):
            run_chunks(OpenAIChatAdapter(), [payload])

    def test_reasoning_only_stream_is_empty_result(self) -> None:
        payload = openai_sse(reasoning=("a", "b"))
        with self.assertRaises(EmptyResultError):
            run_chunks(OpenAIChatAdapter(), [payload])

    def test_empty_result_mentions_vendor_error(self) -> None:
        payload = b'data: {"error": {"message": "Incorrect API key provided"}}\n\n'
        with self.assertRaises(EmptyResultError) as ctx:
            run_chunks(OpenAIChatAdapter(), [payload])
        self.assertIn("Incorrect API key provided", str(ctx.exception))

    def test_non_streaming_openai_object(self) -> None:
        record = {"choices": [{"index": 0, "message": {"role": "assistant", "content": "```\nfeat: x\n```"}}]}
        self.assertEqual(run_chunks(OpenAIChatAdapter(), [json.dumps(record).encode()]), "feat: x")

    def test_clean_answer(self) -> None:
        self.assertEqual(clean_answer("  ```md\nchore: y\n```  "), "chore: y")
        self.assertEqual(clean_answer("plain"), "plain")


if __name__ == "__main__":
    unittest.main()
