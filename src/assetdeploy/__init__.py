"""
assetdeploy -- fingerprinted static asset sync for object stores.

Upload what the build produced. Keep what browsers may still ask for.
Retire the rest, but only after the grace period has passed.

Stores: Amazon S3 (and S3-compatible endpoints), local filesystem.
"""

import os

__version__ = "0.1.0"

CONFIG_PATH = os.environ.get("ASSETDEPLOY_CONFIG", "assetdeploy.yaml")

from .engine import AssetSyncEngine  # noqa: E402
from .removal_manifest import RemovalManifest  # noqa: E402

__all__ = ["AssetSyncEngine", "RemovalManifest", "CONFIG_PATH", "__version__"]
