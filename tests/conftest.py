"""Shared test fixtures for assetdeploy."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

import pytest

from assetdeploy.assets import LocalAsset
from assetdeploy.collectors import LocalAssetCollector
from assetdeploy.errors import ObjectNotFoundError
from assetdeploy.store import MAX_DELETE_BATCH, ObjectMeta, ObjectStore


class MemoryStore(ObjectStore):
    """In-memory object store that records every mutating call."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.modified: dict[str, datetime] = {}
        self.puts: list[dict] = []
        self.delete_calls: list[list[str]] = []
        self.list_calls = 0
        # Keys that delete_objects reports as failed and leaves in place.
        self.undeletable: set[str] = set()

    @property
    def name(self) -> str:
        return "memory://test-bucket"

    def add(self, key: str, last_modified, body: bytes = b"") -> None:
        if isinstance(last_modified, str):
            last_modified = datetime.fromisoformat(last_modified)
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        self.objects[key] = body
        self.modified[key] = last_modified

    def list_objects(self) -> Iterator[ObjectMeta]:
        self.list_calls += 1
        for key in list(self.objects):
            yield ObjectMeta(key=key, last_modified=self.modified[key])

    def get_object(self, key: str) -> bytes:
        if key not in self.objects:
            raise ObjectNotFoundError(key)
        return self.objects[key]

    def put_object(self, key, body, content_type=None, cache_control=None, **extra) -> None:
        data = body if isinstance(body, bytes) else body.read()
        self.puts.append({
            "key": key,
            "body": data,
            "content_type": content_type,
            "cache_control": cache_control,
            **extra,
        })
        self.objects[key] = data
        self.modified[key] = datetime.now(timezone.utc)

    def delete_objects(self, keys: list[str]) -> list[str]:
        assert len(keys) <= MAX_DELETE_BATCH
        self.delete_calls.append(list(keys))
        failed = []
        for key in keys:
            if key in self.undeletable:
                failed.append(key)
                continue
            self.objects.pop(key, None)
            self.modified.pop(key, None)
        return failed

    @property
    def mutation_count(self) -> int:
        return len(self.puts) + len(self.delete_calls)


class StaticAssetCollector(LocalAssetCollector):
    """Local collector over a fixed list of keys rooted at ``root``."""

    def __init__(self, keys: list[str], root: Optional[Path] = None, remove_fingerprint=None):
        super().__init__(remove_fingerprint)
        self.keys = list(keys)
        self.root = root or Path("/nonexistent")

    def assets(self) -> list[LocalAsset]:
        return [self._make_asset(k, self.root / k) for k in self.keys]


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None):
        self.current = now or datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    """Provide an empty build output directory."""
    public = tmp_path / "public"
    public.mkdir()
    return public


def write_assets(root: Path, *keys: str) -> None:
    """Create placeholder files for the given asset keys under ``root``."""
    for key in keys:
        path = root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"/* {key} */")
