"""Pure audio-variant filtering and ranking logic.

Every function in this module is a **pure** transformation — no I/O,
no side effects, fully deterministic, and trivially unit-testable.

Pipeline order (enforced by :func:`select_audio_variants`):

1. **Convert** — drop candidates without content, flatten the rest.
2. **Rank** — best bitrate first, discovery order kept for ties.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from atlas_extractor.core.models import AudioCandidate, AudioVariant


# ---------------------------------------------------------------------------
# 1. Convert
# ---------------------------------------------------------------------------

def to_audio_variant(candidate: AudioCandidate) -> AudioVariant | None:
    """Flatten one engine candidate, or return ``None`` if it has no content."""
    content = candidate.content
    if content is None or not content.strip():
        return None
    fmt = candidate.format
    delivery = candidate.delivery_method
    return AudioVariant(
        url=content,
        format=fmt.name if fmt is not None else "",
        mime_type=fmt.mime_type if fmt is not None else "",
        bitrate=candidate.bitrate,
        average_bitrate=candidate.average_bitrate,
        delivery=delivery.name.lower() if delivery is not None else "",
    )


def to_audio_variants(candidates: Iterable[AudioCandidate]) -> list[AudioVariant]:
    """Convert candidates in discovery order, skipping blank content."""
    variants: list[AudioVariant] = []
    for candidate in candidates:
        variant = to_audio_variant(candidate)
        if variant is not None:
            variants.append(variant)
    return variants


# ---------------------------------------------------------------------------
# 2. Rank
# ---------------------------------------------------------------------------

def rank_key(variant: AudioVariant) -> int:
    """Return the larger of the two bitrates, clamping unknown values to 0."""
    average = variant.average_bitrate if variant.average_bitrate > 0 else 0
    bitrate = variant.bitrate if variant.bitrate > 0 else 0
    return max(average, bitrate)


def rank_audio_variants(variants: Sequence[AudioVariant]) -> list[AudioVariant]:
    """Sort by :func:`rank_key`, highest first.

    :func:`sorted` is stable, so variants with equal keys keep their
    original relative order.
    """
    return sorted(variants, key=rank_key, reverse=True)


# ---------------------------------------------------------------------------
# Composite pipeline
# ---------------------------------------------------------------------------

def select_audio_variants(
    candidates: Iterable[AudioCandidate],
) -> list[AudioVariant]:
    """Run the full convert → rank pipeline.

    Returns an empty list when no candidate carries content.
    """
    return rank_audio_variants(to_audio_variants(candidates))
