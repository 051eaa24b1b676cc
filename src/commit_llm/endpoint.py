"""Endpoint resolution: turn a raw URL and a provider profile into a transport address."""

from __future__ import annotations

import logging
import re
from urllib.parse import SplitResult, urlsplit

from commit_llm.errors import ResolutionError
from commit_llm.registry import ProviderRegistry
from commit_llm.types import MODEL_PLACEHOLDER, ProtocolFamily, ProviderProfile, ResolvedEndpoint

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"https": 443, "http": 80}
_HAS_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def split_url(raw: str) -> SplitResult:
    """Split ``raw`` into URL parts, reading scheme-less input as ``host[:port]/path``."""
    raw = (raw or "").strip()
    if raw and not _HAS_SCHEME.match(raw) and not raw.startswith("/"):
        raw = "//" + raw
    return urlsplit(raw)


def join_path_suffix(path: str, suffix: str) -> str:
    """Append ``suffix`` to ``path`` unless already present, with exactly one ``/`` between."""
    if suffix and not path.endswith(suffix):
        if path.endswith("/") and suffix.startswith("/"):
            path = path[:-1] + suffix
        elif not path.endswith("/") and not suffix.startswith("/"):
            path = f"{path}/{suffix}"
        else:
            path = path + suffix
    return path or "/"


def resolve_endpoint(raw: str | None, profile: ProviderProfile, model: str = "") -> ResolvedEndpoint:
    """Resolve host, port and path for a request to ``profile``.

    An empty ``raw`` (or one without a host) falls back to the profile's default
    host and scheme. A suffix with a model placeholder is filled from ``model``
    unless the user path already names a model there. Resolving
    ``endpoint.url`` again yields the same endpoint.
    """
    parts = split_url(raw or "")
    host = parts.hostname or ""

    if host:
        scheme = (parts.scheme or profile.default_scheme).lower()
        default_port = None
    else:
        host = profile.default_host
        scheme = profile.default_scheme
        default_port = profile.default_port
    if not host:
        raise ResolutionError(f"No host for provider '{profile.name}' (endpoint {raw!r})")
    if scheme not in _DEFAULT_PORTS:
        raise ResolutionError(f"Unsupported URL scheme '{scheme}' in {raw!r}")

    try:
        explicit_port = parts.port
    except ValueError as exc:
        raise ResolutionError(f"Invalid port in endpoint {raw!r}") from exc
    port = explicit_port or default_port or _DEFAULT_PORTS[scheme]

    if _names_model(parts.path, profile.default_path_suffix):
        path = parts.path
    else:
        path = join_path_suffix(parts.path, profile.path_suffix_for(model))
    return ResolvedEndpoint(scheme=scheme, host=host, port=port, path=path)


def _names_model(path: str, suffix: str) -> bool:
    if MODEL_PLACEHOLDER not in suffix:
        return False
    pattern = "[^/]+".join(re.escape(part) for part in suffix.split(MODEL_PLACEHOLDER))
    return re.search(pattern + "$", path) is not None


def match_profile(
    registry: ProviderRegistry,
    hostname: str,
    protocol: ProtocolFamily | None,
    *,
    provider: str | None = None,
    strict_protocol: bool = False,
) -> ProviderProfile:
    """Pick the profile that shapes a request.

    Order: hostname match, then the named provider, then the protocol family's
    canonical profile. ``strict_protocol`` limits the hostname match to profiles
    of ``protocol``, for callers that declared the protocol explicitly.
    """
    family_filter = protocol if strict_protocol else None
    profile = registry.find_by_host(hostname, family_filter)
    if profile is not None:
        return profile

    if provider and provider in registry:
        profile = registry.get(provider)
        if not strict_protocol or protocol is None or profile.protocol_family is protocol:
            return profile

    if protocol is not None:
        profile = registry.canonical_for(protocol)
        if profile is not None:
            return profile

    raise ResolutionError(
        f"No matching LLM service configuration found: {hostname or provider or protocol}"
    )
