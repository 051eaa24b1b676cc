"""Async client orchestrating one streamed completion per invocation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from commit_llm.config import DEFAULT_TIMEOUT_SECONDS, PROVIDER_PRESETS, render_prompt
from commit_llm.endpoint import match_profile, resolve_endpoint, split_url
from commit_llm.errors import CompletionError, ResolutionError, TerminalParseError, TransportError
from commit_llm.live import LiveSlot
from commit_llm.protocols import ProtocolAdapter, build_headers, get_adapter, redact_headers
from commit_llm.registry import CUSTOM_PROVIDER, ProviderRegistry, default_registry
from commit_llm.stream import CompletionStream, SegmentClassifier, StreamState
from commit_llm.types import (
    CanonicalRequest,
    CompletionOutcome,
    Invocation,
    ProtocolFamily,
    ProviderProfile,
    ResolvedEndpoint,
)


@dataclass(frozen=True)
class PreparedRequest:
    """Everything the transport needs for one POST."""

    profile: ProviderProfile
    adapter: ProtocolAdapter
    endpoint: ResolvedEndpoint
    request: CanonicalRequest
    headers: dict[str, str]
    body: dict[str, Any]

    @property
    def content(self) -> bytes:
        return json.dumps(self.body, ensure_ascii=False).encode("utf-8")


class CompletionClient:
    """Resolve, build, send and parse a completion for any registered provider."""

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        registry: ProviderRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = registry or default_registry
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CompletionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def prepare(self, invocation: Invocation) -> PreparedRequest:
        """Resolve the endpoint and build headers and body without sending anything."""
        if invocation.provider != CUSTOM_PROVIDER and invocation.provider not in self._registry:
            raise ResolutionError(f"Provider '{invocation.provider}' is not available.")
        protocol = self._declared_protocol(invocation)
        raw_url = invocation.endpoint_override or ""
        hostname = split_url(raw_url).hostname or ""
        profile = match_profile(
            self._registry,
            hostname,
            protocol,
            provider=None if invocation.provider == CUSTOM_PROVIDER else invocation.provider,
            strict_protocol=bool(invocation.protocol_override),
        )
        endpoint = resolve_endpoint(raw_url, profile, invocation.model)
        adapter = get_adapter(profile.protocol_family)

        request = CanonicalRequest(
            model=invocation.model,
            system_text=invocation.system_text,
            user_text=render_prompt(invocation.prompt_text, invocation.files, invocation.diff_text),
            temperature=invocation.sampling.temperature,
            top_p=invocation.sampling.top_p,
            max_tokens=invocation.sampling.max_tokens,
        )
        headers = build_headers(profile, invocation.credential)
        body = adapter.build_body(request, profile)

        self._logger.info(
            "Resolved provider=%s profile=%s url=%s", invocation.provider, profile.name, endpoint.url
        )
        self._logger.debug("Request headers=%s body=%s", redact_headers(profile, headers), body)
        return PreparedRequest(
            profile=profile,
            adapter=adapter,
            endpoint=endpoint,
            request=request,
            headers=headers,
            body=body,
        )

    async def complete(
        self,
        invocation: Invocation,
        *,
        answer_slot: LiveSlot | None = None,
        status_slot: LiveSlot | None = None,
    ) -> str:
        """Stream a completion and return the final answer text.

        Raises a :class:`~commit_llm.errors.CompletionError` subclass on failure.
        """
        prepared = self.prepare(invocation)
        return await self.send(prepared, answer_slot=answer_slot, status_slot=status_slot)

    async def generate(
        self,
        invocation: Invocation,
        *,
        answer_slot: LiveSlot | None = None,
        status_slot: LiveSlot | None = None,
    ) -> CompletionOutcome:
        """Like :meth:`complete`, but report failures as a structured outcome."""
        try:
            text = await self.complete(invocation, answer_slot=answer_slot, status_slot=status_slot)
        except CompletionError as exc:
            self._logger.warning("Completion failed (%s): %s", exc.kind, exc.message)
            return CompletionOutcome(provider=invocation.provider, failure=exc.to_failure())
        return CompletionOutcome(provider=invocation.provider, text=text)

    async def send(
        self,
        prepared: PreparedRequest,
        *,
        answer_slot: LiveSlot | None = None,
        status_slot: LiveSlot | None = None,
    ) -> str:
        """POST a prepared request and parse the response stream."""
        state = StreamState()
        stream = CompletionStream(prepared.adapter, SegmentClassifier(answer_slot, status_slot))

        try:
            async with self._client.stream(
                "POST",
                prepared.endpoint.url,
                headers=prepared.headers,
                content=prepared.content,
            ) as response:
                self._logger.info("%s responded with status %d", prepared.profile.name, response.status_code)
                if response.status_code >= 400:
                    self._logger.warning(
                        "%s returned HTTP %d %s",
                        prepared.profile.name,
                        response.status_code,
                        response.reason_phrase,
                    )
                    await response.aread()
                    raise TerminalParseError(_http_error_message(prepared, response))
                async for chunk in response.aiter_bytes():
                    stream.feed(state, chunk)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        return stream.close(state)

    def _declared_protocol(self, invocation: Invocation) -> ProtocolFamily:
        if invocation.protocol_override:
            try:
                return ProtocolFamily.parse(invocation.protocol_override)
            except ValueError as exc:
                raise ResolutionError(str(exc)) from exc
        if invocation.provider in self._registry:
            return self._registry.get(invocation.provider).protocol_family
        preset = PROVIDER_PRESETS.get(invocation.provider)
        return preset.protocol if preset else ProtocolFamily.OPENAI_CHAT


def _http_error_message(prepared: PreparedRequest, response: httpx.Response) -> str:
    """Describe an HTTP error response, preferring the vendor's own error message."""
    text = response.text.strip()
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        document = None
    message = prepared.adapter.extract_error(document) or text[:500] or response.reason_phrase
    return f"{prepared.profile.name} API error (HTTP {response.status_code}): {message}"
