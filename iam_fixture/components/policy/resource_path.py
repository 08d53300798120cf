"""Parsing of slash-delimited compound resource names.

Names such as ``projects/p/locations/l/keyRings/k`` alternate a label
segment and a value segment. Only the values are returned.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from iam_fixture.core.errors import MalformedResourcePath

KEY_RING_LABELS = ("projects", "locations", "keyRings")
CRYPTO_KEY_LABELS = ("projects", "locations", "keyRings", "cryptoKeys")


def parse_resource_path(
    path: str,
    expected_segment_count: int,
    labels: Optional[Sequence[str]] = None,
) -> list[str]:
    """Return the value segments of *path*.

    *expected_segment_count* is the number of label/value pairs. When
    *labels* is given each label segment must match it positionally.

    Raises MalformedResourcePath when the pair count, a label, or an empty
    segment does not fit the schema.
    """
    if labels is not None and len(labels) != expected_segment_count:
        raise ValueError(
            f"{len(labels)} labels given for {expected_segment_count} segments"
        )
    segments = path.split("/")
    if len(segments) != expected_segment_count * 2:
        raise MalformedResourcePath(
            path,
            f"expected {expected_segment_count * 2} segments "
            f"({expected_segment_count} label/value pairs), got {len(segments)}",
        )
    if any(not segment for segment in segments):
        raise MalformedResourcePath(path, "empty segment")

    found_labels = segments[0::2]
    if labels is not None and list(found_labels) != list(labels):
        raise MalformedResourcePath(
            path, f"expected labels {list(labels)}, got {found_labels}"
        )
    return segments[1::2]


@dataclass(frozen=True)
class KeyRingPath:
    project: str
    location: str
    key_ring: str


@dataclass(frozen=True)
class CryptoKeyPath:
    project: str
    location: str
    key_ring: str
    crypto_key: str


def parse_key_ring(name: str) -> KeyRingPath:
    """Split ``projects/<p>/locations/<l>/keyRings/<ring>``."""
    return KeyRingPath(*parse_resource_path(name, 3, KEY_RING_LABELS))


def parse_crypto_key(name: str) -> CryptoKeyPath:
    """Split ``projects/<p>/locations/<l>/keyRings/<ring>/cryptoKeys/<key>``."""
    return CryptoKeyPath(*parse_resource_path(name, 4, CRYPTO_KEY_LABELS))
