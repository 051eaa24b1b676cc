"""Provider-agnostic request, endpoint and result models."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from commit_llm.config import Settings

FailureKind = Literal["resolution", "transport", "terminal_parse", "empty_result"]
Channel = Literal["answer", "reasoning"]

MODEL_PLACEHOLDER = "{model}"


class ProtocolFamily(str, Enum):
    """Vendor wire contracts understood by the adapter."""

    OPENAI_CHAT = "openai-chat"
    OLLAMA_GENERATE = "ollama-generate"
    GEMINI_GENERATE = "gemini-generate"
    ANTHROPIC_MESSAGES = "anthropic-messages"

    @classmethod
    def parse(cls, value: str | ProtocolFamily) -> ProtocolFamily:
        """Accept a family value or the short vendor name used in settings ("openai", "ollama", ...)."""
        if isinstance(value, ProtocolFamily):
            return value
        key = value.strip().lower()
        for family in cls:
            if key in (family.value, family.value.split("-")[0]):
                return family
        raise ValueError(f"Unknown protocol family: {value!r}")


class ProviderProfile(BaseModel):
    """Static description of how to address one vendor."""

    model_config = ConfigDict(frozen=True)

    name: str
    protocol_family: ProtocolFamily
    default_host: str = ""
    # may contain "{model}", filled from the request model or default_model
    default_path_suffix: str = ""
    default_model: str = ""
    header_template: dict[str, str] = Field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )
    credential_header: str | None = None
    default_scheme: Literal["http", "https"] = "https"
    default_port: int | None = None
    # fixed fields some vendors add on top of their family's body shape
    body_extensions: dict[str, Any] = Field(default_factory=dict)

    def path_suffix_for(self, model: str = "") -> str:
        """Return the path suffix with the model placeholder filled in."""
        return self.default_path_suffix.replace(MODEL_PLACEHOLDER, model or self.default_model)


class SamplingParams(BaseModel):
    """Sampling knobs forwarded to the vendor."""

    model_config = ConfigDict(frozen=True)

    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2048


class CanonicalRequest(BaseModel):
    """Normalized request shared by all protocol families."""

    model_config = ConfigDict(frozen=True)

    model: str = ""
    system_text: str
    user_text: str
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2048
    streaming: bool = True


class ResolvedEndpoint(BaseModel):
    """Final transport address for one request."""

    model_config = ConfigDict(frozen=True)

    scheme: Literal["http", "https"]
    host: str
    port: int
    path: str = "/"

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}{self.path}"


class TextDelta(BaseModel):
    """One piece of text extracted from a streamed record."""

    model_config = ConfigDict(frozen=True)

    channel: Channel = "answer"
    text: str


class Failure(BaseModel):
    """Structured failure returned to callers instead of raising."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str


class Invocation(BaseModel):
    """Everything a caller supplies for one completion."""

    prompt_text: str
    files: list[str] = Field(default_factory=list)
    diff_text: str = ""
    provider: str = "custom"
    credential: str | None = None
    endpoint_override: str | None = None
    protocol_override: str | None = None
    model: str = ""
    system_text: str = ""
    sampling: SamplingParams = Field(default_factory=SamplingParams)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        files: list[str],
        diff_text: str = "",
    ) -> Invocation:
        """Build an invocation from loaded settings and the staged changes."""
        return cls(
            prompt_text=settings.prompt_template,
            files=list(files),
            diff_text=diff_text,
            provider=settings.provider,
            credential=settings.api_key or None,
            endpoint_override=settings.url or None,
            protocol_override=settings.protocol,
            model=settings.model,
            system_text=settings.system_prompt,
            sampling=SamplingParams(
                temperature=settings.temperature,
                top_p=settings.top_p,
                max_tokens=settings.max_tokens,
            ),
        )


class CompletionOutcome(BaseModel):
    """Either the resolved answer text or a failure."""

    provider: str
    text: str | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None
