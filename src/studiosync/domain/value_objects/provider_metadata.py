"""Typed views over the provider metadata bag stored on generation jobs.

Hey future me - the metadata column is whatever Suno/Mureka sent us, stored verbatim.
Instead of probing nested keys all over the codebase, parse_provider_metadata() turns
the bag into ONE of two small dataclasses, and each knows how to find its audio URL.
The fallback order lives in exactly one place per provider:

    Suno:   suno_track_data -> response.sunoData / tracks -> all_tracks
    Mureka: mureka.choices[0] -> mureka_response.choices[0] -> provider_urls.mp3
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Upstream writes this literal instead of NULL in some code paths.
MISSING_URL_SENTINEL = "missing"


def is_usable_url(url: Any) -> bool:
    """True for a non-empty string that is not the "missing" sentinel."""
    if not isinstance(url, str):
        return False
    stripped = url.strip()
    return bool(stripped) and stripped != MISSING_URL_SENTINEL


def _audio_url_of(entry: Any) -> str | None:
    # Suno answers use both snake_case and camelCase depending on the endpoint.
    if not isinstance(entry, Mapping):
        return None
    for key in ("audio_url", "audioUrl"):
        value = entry.get(key)
        if is_usable_url(value):
            return str(value).strip()
    return None


def _as_entries(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


@dataclass(frozen=True)
class SunoMetadata:
    """Suno response shapes we know how to read."""

    primary_track: Mapping[str, Any] | None = None
    response_tracks: list[Mapping[str, Any]] = field(default_factory=list)
    all_tracks: list[Mapping[str, Any]] = field(default_factory=list)

    provider = "suno"

    @classmethod
    def from_bag(cls, bag: Mapping[str, Any]) -> SunoMetadata:
        primary = bag.get("suno_track_data")
        response = bag.get("response")
        response_tracks: list[Mapping[str, Any]] = []
        if isinstance(response, Mapping):
            response_tracks.extend(_as_entries(response.get("sunoData")))
        response_tracks.extend(_as_entries(bag.get("tracks")))
        return cls(
            primary_track=primary if isinstance(primary, Mapping) else None,
            response_tracks=response_tracks,
            all_tracks=_as_entries(bag.get("all_tracks")),
        )

    def audio_url(self) -> str | None:
        """First non-empty audio URL in documented priority order."""
        candidates: list[Any] = [self.primary_track]
        candidates.extend(self.response_tracks)
        candidates.extend(self.all_tracks)
        for entry in candidates:
            url = _audio_url_of(entry)
            if url:
                return url
        return None


@dataclass(frozen=True)
class MurekaMetadata:
    """Mureka response shapes we know how to read."""

    mureka_choices: list[Mapping[str, Any]] = field(default_factory=list)
    response_choices: list[Mapping[str, Any]] = field(default_factory=list)
    provider_mp3_url: str | None = None

    provider = "mureka"

    @classmethod
    def from_bag(cls, bag: Mapping[str, Any]) -> MurekaMetadata:
        def choices_of(key: str) -> list[Mapping[str, Any]]:
            container = bag.get(key)
            if not isinstance(container, Mapping):
                return []
            return _as_entries(container.get("choices"))

        provider_urls = bag.get("provider_urls")
        mp3 = provider_urls.get("mp3") if isinstance(provider_urls, Mapping) else None
        return cls(
            mureka_choices=choices_of("mureka"),
            response_choices=choices_of("mureka_response"),
            provider_mp3_url=mp3 if is_usable_url(mp3) else None,
        )

    def audio_url(self) -> str | None:
        """choices[0].url of either container, then provider_urls.mp3."""
        for choices in (self.mureka_choices, self.response_choices):
            if choices and is_usable_url(choices[0].get("url")):
                return str(choices[0]["url"]).strip()
        return self.provider_mp3_url


ProviderMetadata = SunoMetadata | MurekaMetadata


def parse_provider_metadata(
    provider: str, metadata: Mapping[str, Any] | None
) -> ProviderMetadata | None:
    """Build the typed view for a provider, None for unknown providers.

    Raises:
        TypeError: metadata is neither None nor a mapping
    """
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, Mapping):
        raise TypeError(
            f"Generation metadata must be an object, got {type(metadata).__name__}"
        )
    if provider == "suno":
        return SunoMetadata.from_bag(metadata)
    if provider == "mureka":
        return MurekaMetadata.from_bag(metadata)
    return None


def resolve_audio_url(
    provider: str, result_url: str | None, metadata: Mapping[str, Any] | None
) -> str | None:
    """Pick the audio URL for a job.

    The direct result_url always wins when usable; provider metadata is only a
    fallback. Returns None when nothing usable exists - that is not an error.
    """
    if is_usable_url(result_url):
        return str(result_url).strip()
    typed = parse_provider_metadata(provider, metadata)
    if typed is None:
        return None
    return typed.audio_url()
