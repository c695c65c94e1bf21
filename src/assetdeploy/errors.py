"""
Exception types raised by the deploy engine and its collaborators.
"""

from __future__ import annotations

from typing import Iterable, Optional


class AssetDeployError(Exception):
    """Base class for every fatal assetdeploy condition."""


class DuplicateAssetsError(AssetDeployError):
    """Raised when two local assets share one logical name."""

    def __init__(self, duplicates: Optional[Iterable[str]] = None):
        self.duplicates = sorted(duplicates or [])
        msg = (
            "Duplicate precompiled assets detected. Please make sure there "
            "are no duplicate precompiled assets in the public dir."
        )
        if self.duplicates:
            msg += f" Conflicting logical names: {', '.join(self.duplicates)}"
        super().__init__(msg)


class ManifestNotLoadedError(AssetDeployError):
    """Raised when the removal manifest is accessed before load()."""


class ObjectNotFoundError(AssetDeployError):
    """Raised by an object store when a requested key does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object not found: {key}")


class ConfigError(AssetDeployError):
    """Raised when a deploy config file exists but cannot be used."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Invalid deploy config {path}: {reason}")
