"""Protocol-family adapter interface and shared request helpers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from commit_llm.types import CanonicalRequest, ProtocolFamily, ProviderProfile, TextDelta


class ProtocolAdapter(ABC):
    """Request shaping and response extraction for one protocol family."""

    family: ProtocolFamily
    # Whole-document families answer with one JSON body that is parsed at stream end.
    whole_document: bool = False

    def build_body(self, req: CanonicalRequest, profile: ProviderProfile) -> dict[str, Any]:
        """Return the vendor request body, with the profile's fixed extensions applied."""
        payload = self._build_payload(req)
        payload.update(profile.body_extensions)
        return payload

    @abstractmethod
    def _build_payload(self, req: CanonicalRequest) -> dict[str, Any]:
        raise NotImplementedError

    def extract_deltas(self, record: dict[str, Any]) -> list[TextDelta]:
        """Return the text deltas carried by one streamed record."""
        return []

    def extract_document_text(self, document: Any) -> str | None:
        """Return the answer text of a whole-document response, if any."""
        return None

    @staticmethod
    def extract_error(record: Any) -> str | None:
        """Return a vendor error message carried by a record or document."""
        if not isinstance(record, dict):
            return None
        error = record.get("error")
        if isinstance(error, str):
            return error or None
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
            return json.dumps(error, ensure_ascii=False)
        return None


def build_headers(profile: ProviderProfile, credential: str | None) -> dict[str, str]:
    """Copy the profile's header template and inject ``credential``.

    The credential is appended to any value already templated at the credential
    header (``"Bearer "`` + key). Profiles without a credential header never send it.
    """
    headers = dict(profile.header_template)
    headers.setdefault("Content-Type", "application/json")
    if credential and profile.credential_header:
        existing = headers.get(profile.credential_header, "")
        headers[profile.credential_header] = f"{existing}{credential}"
    return headers


def redact_headers(profile: ProviderProfile, headers: dict[str, str]) -> dict[str, str]:
    """Return ``headers`` safe for logging."""
    if profile.credential_header and profile.credential_header in headers:
        return {**headers, profile.credential_header: "***"}
    return dict(headers)


def first_choice(record: dict[str, Any]) -> dict[str, Any]:
    choices = record.get("choices")
    if not isinstance(choices, list) or not choices:
        return {}
    choice = choices[0]
    return choice if isinstance(choice, dict) else {}
