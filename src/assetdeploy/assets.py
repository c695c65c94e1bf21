"""
Physical asset types -- one concrete fingerprinted object each.

Local assets come from the build output and know where their file
lives. Remote assets come from a store listing and know when they
were last written. Both compare equal by key alone.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .fingerprint import FingerprintRemover, remove_fingerprint

logger = logging.getLogger("assetdeploy.assets")


class PhysicalAsset:
    """A single fingerprinted asset key and its derived logical name."""

    def __init__(self, key: str, remove_fingerprint: Optional[FingerprintRemover] = None):
        self.key = key
        self._remove_fingerprint = remove_fingerprint
        self._logical_name: Optional[str] = None

    @property
    def logical_name(self) -> str:
        """The key with its fingerprint removed (memoized)."""
        if self._logical_name is None:
            codec = self._remove_fingerprint or remove_fingerprint
            logical = codec(self.key)
            if logical == self.key:
                logger.warning("No fingerprint found for %s", self.key)
            self._logical_name = logical
        return self._logical_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PhysicalAsset):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return self.key

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class LocalAsset(PhysicalAsset):
    """An asset produced by the local build, resolvable to a file."""

    def __init__(
        self,
        key: str,
        full_path: Path,
        remove_fingerprint: Optional[FingerprintRemover] = None,
    ):
        super().__init__(key, remove_fingerprint)
        self.full_path = Path(full_path)


class RemoteAsset(PhysicalAsset):
    """An asset present in the object store."""

    def __init__(
        self,
        key: str,
        last_modified: datetime,
        remove_fingerprint: Optional[FingerprintRemover] = None,
    ):
        super().__init__(key, remove_fingerprint)
        self.last_modified = last_modified
