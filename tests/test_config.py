"""Tests for config loading, env overrides and engine wiring."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from assetdeploy.collectors import DirectoryAssetCollector, ManifestAssetCollector
from assetdeploy.config import build_engine, build_local_collector, load_config, save_config
from assetdeploy.errors import ConfigError
from assetdeploy.models import DeployConfig, SourceType, StoreType
from assetdeploy.store import LocalObjectStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("ASSETDEPLOY_BUCKET", "ASSETDEPLOY_STORE", "ASSETDEPLOY_LOCAL_PATH",
                "S3_REGION", "S3_ENDPOINT_URL", "ASSETDEPLOY_CONFIG"):
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    def test_defaults_when_missing(self, tmp_path: Path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.store_type == StoreType.S3
        assert config.retention.version_limit == 2
        assert config.retention.version_ttl == 3600
        assert config.retention.removed_ttl == 172800

    def test_reads_yaml(self, tmp_path: Path):
        path = tmp_path / "assetdeploy.yaml"
        path.write_text(yaml.dump({
            "bucket": "my-assets",
            "region": "eu-west-1",
            "source": "manifest",
            "manifest_path": "public/packs/manifest.json",
            "prefix": "/packs/",
            "retention": {"version_limit": 5, "removed_ttl": 60},
            "upload_options": {"ACL": "public-read"},
        }))

        config = load_config(path)
        assert config.bucket == "my-assets"
        assert config.region == "eu-west-1"
        assert config.source == SourceType.MANIFEST
        assert config.prefix == "packs"
        assert config.retention.version_limit == 5
        assert config.retention.version_ttl == 3600
        assert config.retention.removed_ttl == 60
        assert config.upload_options == {"ACL": "public-read"}

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "assetdeploy.yaml"
        path.write_text(yaml.dump({"bucket": "from-file"}))
        monkeypatch.setenv("ASSETDEPLOY_BUCKET", "from-env")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")

        config = load_config(path)
        assert config.bucket == "from-env"
        assert config.endpoint_url == "http://minio:9000"

    def test_invalid_yaml_is_fatal(self, tmp_path: Path, caplog):
        path = tmp_path / "assetdeploy.yaml"
        path.write_text("bucket: [unclosed")
        with pytest.raises(ConfigError, match="Invalid deploy config"):
            load_config(path)
        assert "Failed to read deploy config" in caplog.text

    def test_non_mapping_is_fatal(self, tmp_path: Path):
        path = tmp_path / "assetdeploy.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="expected a mapping"):
            load_config(path)

    def test_invalid_value_never_falls_back_to_defaults(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "assetdeploy.yaml"
        path.write_text(yaml.dump({
            "source": "manifest",
            "manifest_path": "public/packs/manifest.json",
            "fingerprint_pattern": r"(.*)\.([0-9a-f]{8})(\.[a-z]+)",
            "retention": {"version_limit": -1},
        }))
        monkeypatch.setenv("ASSETDEPLOY_BUCKET", "prod-assets")

        with pytest.raises(ConfigError, match="version_limit"):
            load_config(path)

    def test_invalid_env_override_is_fatal(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("ASSETDEPLOY_STORE", "ftp")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")

    def test_save_load_roundtrip(self, tmp_path: Path):
        path = tmp_path / "assetdeploy.yaml"
        save_config(DeployConfig(store_type=StoreType.LOCAL, local_path=tmp_path / "b"), path)
        config = load_config(path)
        assert config.store_type == StoreType.LOCAL
        assert config.local_path == tmp_path / "b"


class TestBuildEngine:
    def test_directory_source(self, tmp_path: Path):
        collector = build_local_collector(DeployConfig(public_dir=tmp_path))
        assert isinstance(collector, DirectoryAssetCollector)

    def test_manifest_source_requires_path(self):
        with pytest.raises(ValueError, match="manifest_path"):
            build_local_collector(DeployConfig(source=SourceType.MANIFEST))

    def test_manifest_source(self, tmp_path: Path):
        collector = build_local_collector(
            DeployConfig(source=SourceType.MANIFEST, manifest_path=tmp_path / "m.json")
        )
        assert isinstance(collector, ManifestAssetCollector)

    def test_wires_local_store_and_custom_fingerprint(self, tmp_path: Path):
        public = tmp_path / "public"
        public.mkdir()
        (public / "index.1a2b3c4d.js").write_text("x")
        config = DeployConfig(
            store_type=StoreType.LOCAL,
            local_path=tmp_path / "bucket",
            public_dir=public,
            fingerprint_pattern=r"(.*)\.([0-9a-f]{8})(\.[a-z]+)",
            upload_options={"cache_control": "no-cache"},
        )

        engine = build_engine(config)
        assert isinstance(engine.store, LocalObjectStore)
        assert engine.local_collector.original_asset_paths() == ["index.js"]
        assert engine.upload_options == {"cache_control": "no-cache"}
