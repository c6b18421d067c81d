"""Domain value objects."""

from studiosync.domain.value_objects.provider_metadata import (
    MISSING_URL_SENTINEL,
    MurekaMetadata,
    ProviderMetadata,
    SunoMetadata,
    is_usable_url,
    parse_provider_metadata,
    resolve_audio_url,
)

__all__ = [
    "MISSING_URL_SENTINEL",
    "MurekaMetadata",
    "ProviderMetadata",
    "SunoMetadata",
    "is_usable_url",
    "parse_provider_metadata",
    "resolve_audio_url",
]
