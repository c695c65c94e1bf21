"""
Removal manifest -- the tombstone ledger for retired assets.

A single JSON document in the bucket maps object keys to the moment
they were first seen without a local counterpart:

    {"assets/app-1a2b3c.js": "2026-05-01T15:38:31Z"}

The document is fetched once, mutated in memory, and written back
only when something changed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterator, Optional

from .errors import ManifestNotLoadedError, ObjectNotFoundError
from .store import ObjectStore

logger = logging.getLogger("assetdeploy.removal_manifest")

REMOVAL_MANIFEST_KEY = "assetdeploy-removal-manifest.json"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(moment: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a manifest timestamp. Naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RemovalManifest:
    """Persisted mapping of object key to removed-at timestamp."""

    def __init__(self, store: ObjectStore, key: str = REMOVAL_MANIFEST_KEY):
        self.store = store
        self.key = key
        self._entries: dict[str, str] = {}
        self._loaded = False
        self._changed = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def changed(self) -> bool:
        return self._changed

    def load(self) -> bool:
        """Fetch the manifest from the store, once per instance.

        A missing document is an empty manifest.

        Returns:
            True once the manifest is available.
        """
        if self._loaded:
            return True

        try:
            raw = self.store.get_object(self.key)
        except ObjectNotFoundError:
            logger.info("No removal manifest at %s, starting empty", self.key)
            entries: dict[str, str] = {}
        else:
            data = json.loads(raw.decode("utf-8")) if raw else {}
            if not isinstance(data, dict):
                raise ValueError(f"Removal manifest {self.key} is not a JSON object")
            entries = {str(k): str(v) for k, v in data.items()}

        self._entries = entries
        self._loaded = True
        logger.debug("Loaded removal manifest with %d entries", len(entries))
        return True

    def save(self) -> bool:
        """Write the manifest back if it was loaded and changed.

        Returns:
            False if the manifest was never loaded, True otherwise.
        """
        if not self._loaded:
            logger.debug("Refusing to save removal manifest that was never loaded")
            return False
        if not self._changed:
            return True

        body = json.dumps(self._entries, indent=2, sort_keys=True).encode("utf-8")
        self.store.put_object(self.key, body, content_type="application/json")
        self._changed = False
        logger.info("Saved removal manifest (%d entries)", len(self._entries))
        return True

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise ManifestNotLoadedError(
                "Removal manifest must be loaded before it is read or modified"
            )

    def get(self, key: str) -> Optional[str]:
        self._require_loaded()
        return self._entries.get(key)

    def removed_at(self, key: str) -> Optional[datetime]:
        """Parsed removed-at time for ``key``, or None if not tombstoned."""
        value = self.get(key)
        return parse_timestamp(value) if value is not None else None

    def set(self, key: str, removed_at: datetime) -> None:
        self._require_loaded()
        self._entries[key] = format_timestamp(removed_at)
        self._changed = True

    def delete(self, key: str) -> Optional[str]:
        self._require_loaded()
        if key not in self._entries:
            return None
        self._changed = True
        return self._entries.pop(key)

    def keys(self) -> list[str]:
        self._require_loaded()
        return list(self._entries)

    def to_dict(self) -> dict[str, str]:
        self._require_loaded()
        return dict(self._entries)

    def __contains__(self, key: object) -> bool:
        self._require_loaded()
        return key in self._entries

    def __len__(self) -> int:
        self._require_loaded()
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return f"<RemovalManifest {self.store.name}/{self.key} loaded={self._loaded}>"
