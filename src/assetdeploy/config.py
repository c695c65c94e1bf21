"""
Configuration loading -- YAML file, environment overrides, engine wiring.

    # assetdeploy.yaml
    bucket: my-assets
    region: eu-west-1
    source: manifest
    public_dir: public
    manifest_path: public/packs/manifest.json
    retention:
      version_limit: 3
      removed_ttl: 259200
    upload_options:
      ACL: public-read
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .collectors import DirectoryAssetCollector, LocalAssetCollector, ManifestAssetCollector
from .engine import AssetSyncEngine
from .errors import ConfigError
from .fingerprint import make_fingerprint_remover
from .models import DeployConfig, SourceType
from .store import create_store

logger = logging.getLogger("assetdeploy.config")

ENV_OVERRIDES = {
    "ASSETDEPLOY_BUCKET": "bucket",
    "ASSETDEPLOY_STORE": "store_type",
    "ASSETDEPLOY_LOCAL_PATH": "local_path",
    "S3_REGION": "region",
    "S3_ENDPOINT_URL": "endpoint_url",
}


def load_config(path: Optional[Path] = None) -> DeployConfig:
    """Load deploy configuration from disk and the environment.

    Environment variables win over the file. A missing file means
    defaults. A file that exists but cannot be read or validated is
    fatal.

    Args:
        path: Config file. Defaults to ``$ASSETDEPLOY_CONFIG`` or
            ``assetdeploy.yaml`` in the working directory.

    Returns:
        DeployConfig.

    Raises:
        ConfigError: If the file is unreadable, is not a mapping, or
            fails validation after environment overrides.
    """
    config_file = Path(path or os.environ.get("ASSETDEPLOY_CONFIG", "assetdeploy.yaml"))

    data: dict = {}
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except (yaml.YAMLError, OSError) as exc:
            logger.error("Failed to read deploy config %s: %s", config_file, exc)
            raise ConfigError(config_file, str(exc)) from exc
        if not isinstance(data, dict):
            raise ConfigError(config_file, "expected a mapping")

    for env_var, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field_name] = value

    try:
        return DeployConfig(**data)
    except ValidationError as exc:
        logger.error("Invalid deploy config %s: %s", config_file, exc)
        raise ConfigError(config_file, str(exc)) from exc


def save_config(config: DeployConfig, path: Path) -> None:
    """Persist deploy configuration as YAML."""
    data = config.model_dump(mode="json", exclude_none=True)
    Path(path).write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")


def build_local_collector(config: DeployConfig, remove_fingerprint=None) -> LocalAssetCollector:
    """Create the configured local asset collector."""
    if config.source == SourceType.MANIFEST:
        if not config.manifest_path:
            raise ValueError("Manifest source requires 'manifest_path'")
        return ManifestAssetCollector(
            config.manifest_path,
            config.public_dir,
            prefix=config.prefix,
            remove_fingerprint=remove_fingerprint,
        )
    return DirectoryAssetCollector(
        config.public_dir,
        prefix=config.prefix,
        remove_fingerprint=remove_fingerprint,
    )


def build_engine(config: DeployConfig) -> AssetSyncEngine:
    """Wire store, collectors and fingerprint codec from configuration.

    Raises:
        ValueError: If the configuration is incomplete.
    """
    remover = (
        make_fingerprint_remover(config.fingerprint_pattern)
        if config.fingerprint_pattern
        else None
    )
    store = create_store(config)
    return AssetSyncEngine(
        store,
        local_collector=build_local_collector(config, remover),
        remove_fingerprint=remover,
        upload_options=config.upload_options,
    )
