"""
Asset collectors -- the local and remote inventories.

Local collectors describe what the current build wants deployed.
The remote collector describes what the store actually holds. The
engine diffs the two and runs retention over the remote groups.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from .assets import LocalAsset, RemoteAsset
from .fingerprint import FingerprintRemover
from .removal_manifest import REMOVAL_MANIFEST_KEY
from .store import ObjectStore

logger = logging.getLogger("assetdeploy.collectors")

DEFAULT_EXCLUDE_SUFFIXES = (".gz", ".br", "manifest.json")


class LocalAssetCollector(ABC):
    """Abstract source of the assets the current build intends to serve."""

    def __init__(self, remove_fingerprint: Optional[FingerprintRemover] = None):
        self.remove_fingerprint = remove_fingerprint

    @abstractmethod
    def assets(self) -> list[LocalAsset]:
        """Every local asset, in a stable order."""

    def asset_paths(self) -> list[str]:
        return [asset.key for asset in self.assets()]

    def original_asset_paths(self) -> list[str]:
        return [asset.logical_name for asset in self.assets()]

    def asset_map(self) -> dict[str, LocalAsset]:
        """Map logical name to local asset.

        Callers must have ruled out duplicate logical names first.
        """
        return {asset.logical_name: asset for asset in self.assets()}

    def full_path(self, asset: LocalAsset) -> Path:
        return asset.full_path

    def _make_asset(self, key: str, full_path: Path) -> LocalAsset:
        return LocalAsset(key, full_path, remove_fingerprint=self.remove_fingerprint)


def _join_key(prefix: str, path: str) -> str:
    prefix = prefix.strip("/")
    path = path.lstrip("/")
    return f"{prefix}/{path}" if prefix else path


class DirectoryAssetCollector(LocalAssetCollector):
    """Collects every file under a build output directory.

    Precompressed siblings and build manifests are skipped, as are
    dotfiles. Keys are POSIX paths relative to ``root``.
    """

    def __init__(
        self,
        root: Path,
        prefix: str = "",
        exclude: Iterable[str] = DEFAULT_EXCLUDE_SUFFIXES,
        remove_fingerprint: Optional[FingerprintRemover] = None,
    ):
        super().__init__(remove_fingerprint)
        self.root = Path(root).expanduser()
        self.prefix = prefix
        self.exclude = tuple(exclude)

    def _skip(self, rel_path: Path) -> bool:
        if any(part.startswith(".") for part in rel_path.parts):
            return True
        return rel_path.name.endswith(self.exclude)

    def assets(self) -> list[LocalAsset]:
        scan_root = self.root / self.prefix if self.prefix else self.root
        if not scan_root.is_dir():
            logger.warning("Asset directory not found: %s", scan_root)
            return []

        result = []
        for path in sorted(scan_root.rglob("*")):
            if not path.is_file():
                continue
            rel_path = path.relative_to(self.root)
            if self._skip(rel_path):
                continue
            result.append(self._make_asset(rel_path.as_posix(), path))
        return result


class ManifestAssetCollector(LocalAssetCollector):
    """Collects assets listed in a JSON build manifest.

    Supported shapes:
        Sprockets:  {"files": {...}, "assets": {"app.js": "app-1a2b.js"}}
        Webpack:    {"app.js": "app-1a2b.js", "app.css": "app-3c4d.css"}

    Keys are ``prefix/<fingerprinted>``; files resolve under ``public_dir``.
    """

    def __init__(
        self,
        manifest_path: Path,
        public_dir: Path,
        prefix: str = "",
        remove_fingerprint: Optional[FingerprintRemover] = None,
    ):
        super().__init__(remove_fingerprint)
        self.manifest_path = Path(manifest_path).expanduser()
        self.public_dir = Path(public_dir).expanduser()
        self.prefix = prefix

    def _load_entries(self) -> list[str]:
        if not self.manifest_path.exists():
            logger.warning("Build manifest not found: %s", self.manifest_path)
            return []

        data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Build manifest {self.manifest_path} is not a JSON object")

        mapping = data.get("assets") if isinstance(data.get("assets"), dict) else data
        return sorted({v for v in mapping.values() if isinstance(v, str)})

    def assets(self) -> list[LocalAsset]:
        result = []
        for entry in self._load_entries():
            key = _join_key(self.prefix, entry)
            result.append(self._make_asset(key, self.public_dir / key))
        return result


class RemoteAssetCollector:
    """Cached inventory of the assets currently in the object store.

    The listing is fetched once and reused until :meth:`clear_cache`.
    Call it after every upload or delete.
    """

    def __init__(
        self,
        store: ObjectStore,
        remove_fingerprint: Optional[FingerprintRemover] = None,
        exclude_keys: Iterable[str] = (REMOVAL_MANIFEST_KEY,),
    ):
        self.store = store
        self.remove_fingerprint = remove_fingerprint
        self.exclude_keys = frozenset(exclude_keys)
        self._cache: Optional[list[RemoteAsset]] = None

    def assets(self) -> list[RemoteAsset]:
        if self._cache is None:
            self._cache = [
                RemoteAsset(
                    obj.key,
                    obj.last_modified,
                    remove_fingerprint=self.remove_fingerprint,
                )
                for obj in self.store.list_objects()
                if obj.key not in self.exclude_keys
            ]
            logger.debug("Listed %d remote assets from %s", len(self._cache), self.store.name)
        return self._cache

    def clear_cache(self) -> None:
        self._cache = None

    def asset_paths(self) -> list[str]:
        return [asset.key for asset in self.assets()]

    def grouped_assets(self) -> dict[str, list[RemoteAsset]]:
        """Partition the listing by logical name, preserving listing order."""
        groups: dict[str, list[RemoteAsset]] = {}
        for asset in self.assets():
            groups.setdefault(asset.logical_name, []).append(asset)
        return groups

    def __repr__(self) -> str:
        return f"<RemoteAssetCollector {self.store.name}>"
