"""
Fingerprint codec -- map a physical asset key to its logical name.

Build tools embed a content hash between the base name and the
extension chain:

    packs/js/application-298e884ee611bb56b6ca.chunk.js
    -> packs/js/application.chunk.js

Only the last hyphen segment before the extensions is stripped, so
base names may keep their own hyphens and tildes.
"""

from __future__ import annotations

import mimetypes
import re
from typing import Callable

FINGERPRINTED_ASSET_REGEX = re.compile(r"(.*)-([A-Za-z0-9]+)((?:\.[A-Za-z0-9]+)+)")

DEFAULT_MIME_TYPE = "application/octet-stream"

FingerprintRemover = Callable[[str], str]


def remove_fingerprint(key: str) -> str:
    """Strip the fingerprint segment from an asset key.

    Args:
        key: Physical asset key, e.g. ``assets/app-1a2b3c.js``.

    Returns:
        The logical name, or ``key`` itself when no fingerprint is present.
    """
    match = FINGERPRINTED_ASSET_REGEX.fullmatch(key)
    if not match:
        return key
    return f"{match.group(1)}{match.group(3)}"


def make_fingerprint_remover(pattern: str) -> FingerprintRemover:
    """Build a fingerprint codec from a custom regular expression.

    The pattern must define exactly three groups: the base, the
    fingerprint and the extension suffix. It is matched against the
    whole key.

    Args:
        pattern: Regular expression source.

    Returns:
        A callable with the same contract as :func:`remove_fingerprint`.

    Raises:
        ValueError: If the pattern is invalid or has the wrong group count.
    """
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid fingerprint pattern {pattern!r}: {exc}") from exc

    if compiled.groups != 3:
        raise ValueError(
            f"Fingerprint pattern must have 3 groups (base, fingerprint, suffix), "
            f"got {compiled.groups}"
        )

    def _remove(key: str) -> str:
        match = compiled.fullmatch(key)
        if not match:
            return key
        return f"{match.group(1)}{match.group(3)}"

    return _remove


def mime_type_for_path(path: str) -> str:
    """Content type to upload an asset with.

    Source maps are served as JSON regardless of the platform table.
    """
    if path.endswith(".map"):
        return "application/json"
    mime_type, _ = mimetypes.guess_type(path, strict=False)
    return mime_type or DEFAULT_MIME_TYPE
