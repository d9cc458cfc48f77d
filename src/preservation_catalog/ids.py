"""Object identifier helpers for the preservation catalog.

Identifiers follow the druid shape ``bb999bb9999``: the letter positions take
only consonants from ``b-df-hjkmnp-tv-z``, so ids such as ``ab123cd4567``
(vowel ``a``) are rejected with ``ObjectIdError``.
"""

from __future__ import annotations

import re


OBJECT_ID_PATTERN = re.compile(
    r"^(?:druid:)?([b-df-hjkmnp-tv-z]{2})([0-9]{3})([b-df-hjkmnp-tv-z]{2})([0-9]{4})$",
    re.IGNORECASE,
)


class ObjectIdError(ValueError):
    """Raised when an object identifier is malformed."""


def _object_id_segments(value: str) -> list[str]:
    match = OBJECT_ID_PATTERN.match(str(value or "").strip())
    if not match:
        raise ObjectIdError(f"object_id {value!r} is not a valid object identifier")
    return [segment.lower() for segment in match.groups()]


def normalize_object_id(value: str) -> str:
    return "".join(_object_id_segments(value))


def is_valid_object_id(value: str) -> bool:
    return OBJECT_ID_PATTERN.match(str(value or "").strip()) is not None


def object_id_tree(object_id: str) -> list[str]:
    """Return the tree path segments, e.g. ``["bc", "123", "df", "4567", "bc123df4567"]``."""
    segments = _object_id_segments(object_id)
    return [*segments, "".join(segments)]


def version_label(version: int) -> str:
    if int(version) < 1:
        raise ValueError(f"version must be positive, got {version}")
    return f"v{int(version):04d}"


def parse_version_label(label: str) -> int | None:
    match = re.fullmatch(r"v(\d{4,})", str(label))
    if not match:
        return None
    version = int(match.group(1))
    return version if version > 0 else None
