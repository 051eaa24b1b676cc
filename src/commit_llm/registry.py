"""Static provider profile table and lookups."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from commit_llm.errors import ResolutionError
from commit_llm.types import ProtocolFamily, ProviderProfile

CUSTOM_PROVIDER = "custom"

_JSON = {"Content-Type": "application/json"}
_BEARER = {**_JSON, "Authorization": "Bearer "}
_CHAT_COMPLETIONS = "/chat/completions"


def _openai_compatible(name: str, host: str, **extra: Any) -> ProviderProfile:
    return ProviderProfile(
        name=name,
        protocol_family=ProtocolFamily.OPENAI_CHAT,
        default_host=host,
        default_path_suffix=_CHAT_COMPLETIONS,
        header_template=dict(_BEARER),
        credential_header="Authorization",
        **extra,
    )


DEFAULT_PROFILES: tuple[ProviderProfile, ...] = (
    # https://ai.google.dev/gemini-api/docs/text-generation
    ProviderProfile(
        name="gemini",
        protocol_family=ProtocolFamily.GEMINI_GENERATE,
        default_host="generativelanguage.googleapis.com",
        default_path_suffix="/v1beta/models/{model}:generateContent",
        default_model="gemini-2.5-flash",
        header_template={**_JSON, "x-goog-api-key": ""},
        credential_header="x-goog-api-key",
    ),
    # https://github.com/ollama/ollama/blob/main/docs/api.md#generate-a-completion
    ProviderProfile(
        name="ollama",
        protocol_family=ProtocolFamily.OLLAMA_GENERATE,
        default_host="localhost",
        default_path_suffix="/api/generate",
        header_template=dict(_JSON),
        default_scheme="http",
        default_port=11434,
    ),
    _openai_compatible("openai", "api.openai.com"),
    _openai_compatible("aliyun", "dashscope.aliyuncs.com"),
    # https://docs.anthropic.com/en/api/messages
    ProviderProfile(
        name="anthropic",
        protocol_family=ProtocolFamily.ANTHROPIC_MESSAGES,
        default_host="api.anthropic.com",
        default_path_suffix="/v1/messages",
        header_template={**_JSON, "anthropic-version": "2023-06-01"},
        credential_header="x-api-key",
    ),
    # https://cloud.tencent.com/document/product/1729/111007
    _openai_compatible(
        "tencent",
        "api.hunyuan.cloud.tencent.com",
        body_extensions={"enable_enhancement": False},
    ),
    _openai_compatible("deepseek", "api.deepseek.com"),
    _openai_compatible("siliconflow", "api.siliconflow.cn"),
    _openai_compatible("volcengine", "ark.cn-beijing.volces.com"),
)

# Profile used when only the protocol family is known.
FAMILY_CANONICAL: dict[ProtocolFamily, str] = {
    ProtocolFamily.OPENAI_CHAT: "openai",
    ProtocolFamily.OLLAMA_GENERATE: "ollama",
    ProtocolFamily.GEMINI_GENERATE: "gemini",
    ProtocolFamily.ANTHROPIC_MESSAGES: "anthropic",
}


class ProviderRegistry:
    """Name-keyed collection of immutable provider profiles."""

    def __init__(self, profiles: Iterable[ProviderProfile] = DEFAULT_PROFILES) -> None:
        self._profiles: dict[str, ProviderProfile] = {}
        for profile in profiles:
            self.register(profile)

    def register(self, profile: ProviderProfile) -> None:
        """Add a profile; names must be unique."""
        if profile.name == CUSTOM_PROVIDER:
            raise ValueError("'custom' is reserved for user-supplied endpoints")
        if profile.name in self._profiles:
            raise ValueError(f"Provider profile '{profile.name}' is already registered")
        self._profiles[profile.name] = profile

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> ProviderRegistry:
        """Return a new registry with per-profile field overrides applied.

        Unknown names in ``overrides`` become new profiles, which must then carry
        at least a ``protocol_family``.
        """
        profiles = dict(self._profiles)
        for name, changes in overrides.items():
            base = profiles.get(name)
            if base is None:
                profiles[name] = ProviderProfile(name=name, **changes)
            else:
                profiles[name] = ProviderProfile.model_validate(
                    {**base.model_dump(), **changes, "name": name}
                )
        return ProviderRegistry(profiles.values())

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def get(self, name: str) -> ProviderProfile:
        """Return a profile by its registered name."""
        try:
            return self._profiles[name]
        except KeyError as exc:
            raise ResolutionError(f"Provider '{name}' is not available.") from exc

    def find_by_host(
        self,
        hostname: str,
        family: ProtocolFamily | None = None,
    ) -> ProviderProfile | None:
        """Return the first profile whose default host equals ``hostname``."""
        if not hostname:
            return None
        for profile in self._profiles.values():
            if profile.default_host != hostname:
                continue
            if family is not None and profile.protocol_family is not family:
                continue
            return profile
        return None

    def canonical_for(self, family: ProtocolFamily) -> ProviderProfile | None:
        """Return the profile that stands in for a bare protocol family."""
        name = FAMILY_CANONICAL.get(family)
        if name is not None and name in self._profiles:
            return self._profiles[name]
        for profile in self._profiles.values():
            if profile.protocol_family is family:
                return profile
        return None


default_registry = ProviderRegistry()
