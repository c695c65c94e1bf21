"""
Tests for the local and remote asset collectors.
"""

from __future__ import annotations

import json
from pathlib import Path

from conftest import StaticAssetCollector, write_assets

from assetdeploy.collectors import (
    DirectoryAssetCollector,
    ManifestAssetCollector,
    RemoteAssetCollector,
)
from assetdeploy.removal_manifest import REMOVAL_MANIFEST_KEY


class TestLocalAssetCollector:
    """Tests for the projections shared by every local collector."""

    def test_projections(self):
        collector = StaticAssetCollector(["assets/app-abc.js", "assets/app-def.css"], root=Path("/srv"))

        assert collector.asset_paths() == ["assets/app-abc.js", "assets/app-def.css"]
        assert collector.original_asset_paths() == ["assets/app.js", "assets/app.css"]
        assert set(collector.asset_map()) == {"assets/app.js", "assets/app.css"}
        assert collector.asset_map()["assets/app.js"].key == "assets/app-abc.js"

    def test_full_path(self):
        collector = StaticAssetCollector(["assets/app-abc.js"], root=Path("/srv/public"))
        asset = collector.assets()[0]
        assert collector.full_path(asset) == Path("/srv/public/assets/app-abc.js")

    def test_custom_codec_propagates(self):
        collector = StaticAssetCollector(["x_v1.js"], remove_fingerprint=lambda k: k.replace("_v1", ""))
        assert collector.original_asset_paths() == ["x.js"]


class TestDirectoryAssetCollector:
    """Tests for walking a build output directory."""

    def test_collects_files_sorted(self, public_dir: Path):
        write_assets(public_dir, "packs/js/app-abc.js", "assets/app-123.css", "packs/js/vendor-def.js")
        collector = DirectoryAssetCollector(public_dir)

        assert collector.asset_paths() == [
            "assets/app-123.css",
            "packs/js/app-abc.js",
            "packs/js/vendor-def.js",
        ]
        asset = collector.assets()[0]
        assert asset.full_path == public_dir / "assets" / "app-123.css"

    def test_skips_compressed_manifests_and_dotfiles(self, public_dir: Path):
        write_assets(
            public_dir,
            "packs/js/app-abc.js",
            "packs/js/app-abc.js.gz",
            "packs/js/app-abc.js.br",
            "packs/manifest.json",
            ".DS_Store",
            "packs/.cache/tmp-1.js",
        )
        collector = DirectoryAssetCollector(public_dir)
        assert collector.asset_paths() == ["packs/js/app-abc.js"]

    def test_prefix_scopes_scan(self, public_dir: Path):
        write_assets(public_dir, "packs/app-abc.js", "robots-1.txt")
        collector = DirectoryAssetCollector(public_dir, prefix="packs")
        assert collector.asset_paths() == ["packs/app-abc.js"]

    def test_missing_directory_is_empty(self, tmp_path: Path, caplog):
        collector = DirectoryAssetCollector(tmp_path / "nope")
        assert collector.assets() == []
        assert "Asset directory not found" in caplog.text


class TestManifestAssetCollector:
    """Tests for reading a JSON build manifest."""

    def test_sprockets_manifest(self, public_dir: Path, tmp_path: Path):
        manifest = tmp_path / ".sprockets-manifest.json"
        manifest.write_text(json.dumps({
            "files": {"app-abc.js": {"logical_path": "app.js"}},
            "assets": {"app.js": "app-abc.js", "app.css": "app-def.css"},
        }))
        collector = ManifestAssetCollector(manifest, public_dir, prefix="/assets/")

        assert collector.asset_paths() == ["assets/app-abc.js", "assets/app-def.css"]
        assert collector.assets()[0].full_path == public_dir / "assets" / "app-abc.js"

    def test_webpack_manifest(self, public_dir: Path):
        manifest = public_dir / "packs" / "manifest.json"
        manifest.parent.mkdir()
        manifest.write_text(json.dumps({
            "application.js": "/packs/js/application-298e884ee611.js",
            "application.js.map": "/packs/js/application-298e884ee611.js.map",
            "entrypoints": {"application": {"js": ["/packs/js/application-298e884ee611.js"]}},
        }))
        collector = ManifestAssetCollector(manifest, public_dir)

        assert collector.asset_paths() == [
            "packs/js/application-298e884ee611.js",
            "packs/js/application-298e884ee611.js.map",
        ]

    def test_missing_manifest_is_empty(self, tmp_path: Path):
        collector = ManifestAssetCollector(tmp_path / "missing.json", tmp_path)
        assert collector.assets() == []


class TestRemoteAssetCollector:
    """Tests for listing, caching and grouping the store contents."""

    def test_assets_exclude_removal_manifest(self, store):
        store.add("assets/app-1.js", "2018-05-01T00:00:00")
        store.add(REMOVAL_MANIFEST_KEY, "2018-05-01T00:00:00", b"{}")
        collector = RemoteAssetCollector(store)

        assert collector.asset_paths() == ["assets/app-1.js"]
        assert collector.assets()[0].last_modified.year == 2018

    def test_listing_is_cached_until_cleared(self, store):
        store.add("a-1.js", "2018-05-01T00:00:00")
        collector = RemoteAssetCollector(store)

        collector.assets()
        store.add("a-2.js", "2018-05-02T00:00:00")
        assert collector.asset_paths() == ["a-1.js"]
        assert store.list_calls == 1

        collector.clear_cache()
        assert collector.asset_paths() == ["a-1.js", "a-2.js"]
        assert store.list_calls == 2

    def test_grouped_assets_preserve_listing_order(self, store):
        for key in ("b-2.js", "a-1.js", "b-1.js", "plain.txt", "a-3.js"):
            store.add(key, "2018-05-01T00:00:00")
        groups = RemoteAssetCollector(store).grouped_assets()

        assert list(groups) == ["b.js", "a.js", "plain.txt"]
        assert [a.key for a in groups["b.js"]] == ["b-2.js", "b-1.js"]
        assert [a.key for a in groups["a.js"]] == ["a-1.js", "a-3.js"]
