"""
Sync Engine -- uploads new asset versions and retires stale ones.

This is the command center. It diffs the local build against the
store, uploads what is missing, then walks every logical asset group
in the store and decides which old versions can go.

    assetdeploy upload  ->  verify -> diff -> put missing objects
    assetdeploy clean   ->  verify -> retention -> batch delete
    assetdeploy deploy  ->  upload -> hook -> clean

Retention rules, per logical name:
    still built locally  -> keep anything younger than version_ttl,
                            and the version_limit newest old versions
    gone from the build  -> tombstone first, delete once the tombstone
                            is older than removed_ttl
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .assets import LocalAsset, RemoteAsset
from .collectors import DirectoryAssetCollector, LocalAssetCollector, RemoteAssetCollector
from .errors import DuplicateAssetsError
from .fingerprint import FingerprintRemover, mime_type_for_path
from .removal_manifest import RemovalManifest
from .store import MAX_DELETE_BATCH, ObjectStore, chunked

logger = logging.getLogger("assetdeploy.engine")

DEFAULT_CACHE_CONTROL = "public, max-age=31536000"

Duration = Union[int, float, timedelta]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_timedelta(value: Duration) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class AssetSyncEngine:
    """Orchestrates fingerprinted asset upload and garbage collection.

    All collaborators are injected. Anything not given falls back to
    the bundled default: a directory collector on ``./public``, a
    remote collector and removal manifest on ``store``, and the wall
    clock.
    """

    def __init__(
        self,
        store: ObjectStore,
        local_collector: Optional[LocalAssetCollector] = None,
        remote_collector: Optional[RemoteAssetCollector] = None,
        removal_manifest: Optional[RemovalManifest] = None,
        remove_fingerprint: Optional[FingerprintRemover] = None,
        clock: Optional[Callable[[], datetime]] = None,
        upload_options: Optional[dict[str, Any]] = None,
    ):
        """Initialize the engine.

        Args:
            store: Object store holding the deployed assets.
            local_collector: Source of the current build's assets.
            remote_collector: Cached inventory of ``store``.
            removal_manifest: Tombstone ledger persisted in ``store``.
            remove_fingerprint: Custom fingerprint codec for the defaults.
            clock: Returns the current time. Injected for tests.
            upload_options: Merged over the default put request options.
        """
        self.store = store
        if local_collector is None:
            local_collector = DirectoryAssetCollector(
                Path.cwd() / "public", remove_fingerprint=remove_fingerprint
            )
        if removal_manifest is None:
            removal_manifest = RemovalManifest(store)
        if remote_collector is None:
            remote_collector = RemoteAssetCollector(
                store,
                remove_fingerprint=remove_fingerprint,
                exclude_keys=(removal_manifest.key,),
            )

        self.local_collector = local_collector
        self.remote_collector = remote_collector
        self.removal_manifest = removal_manifest
        self.clock = clock if clock is not None else _utcnow
        self.upload_options = dict(upload_options or {})

    # ------------------------------------------------------------------
    # Inventory helpers
    # ------------------------------------------------------------------

    def verify_no_duplicate_assets(self) -> None:
        """Fail if two local assets resolve to the same logical name.

        Raises:
            DuplicateAssetsError: Listing the colliding logical names.
        """
        seen: dict[str, int] = {}
        for logical in self.local_collector.original_asset_paths():
            seen[logical] = seen.get(logical, 0) + 1

        duplicates = [name for name, count in seen.items() if count > 1]
        if duplicates:
            raise DuplicateAssetsError(duplicates)

    def local_assets_to_upload(self) -> list[LocalAsset]:
        """Local assets whose key is not in the store yet."""
        remote_keys = set(self.remote_collector.asset_paths())
        return [a for a in self.local_collector.assets() if a.key not in remote_keys]

    def now(self) -> datetime:
        """Current time from the injected clock, as aware UTC."""
        return _aware(self.clock())

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload_asset(self, asset: LocalAsset) -> None:
        """Put a single local asset into the store."""
        options: dict[str, Any] = {
            "content_type": mime_type_for_path(asset.key),
            "cache_control": DEFAULT_CACHE_CONTROL,
        }
        options.update(self.upload_options)

        with open(self.local_collector.full_path(asset), "rb") as fh:
            self.store.put_object(asset.key, fh, **options)

    def _cancel_tombstones(self, local_assets: list[LocalAsset], dry_run: bool) -> list[str]:
        """Drop tombstones for keys (or logical names) built locally again."""
        local_keys = {a.key for a in local_assets}
        local_logical = {a.logical_name for a in local_assets}
        remote_logical = {
            asset.key: asset.logical_name for asset in self.remote_collector.assets()
        }

        restored = []
        for key in self.removal_manifest.keys():
            logical = remote_logical.get(key)
            if key in local_keys or (logical is not None and logical in local_logical):
                restored.append(key)
                if not dry_run:
                    self.removal_manifest.delete(key)

        for key in restored:
            logger.info("Cancelling removal of %s, asset is back in the build", key)
        return restored

    def upload(self, dry_run: bool = False) -> list[str]:
        """Upload every local asset missing from the store.

        Args:
            dry_run: Report what would be uploaded without writing.

        Returns:
            Keys uploaded (or that would be uploaded in a dry run).
        """
        self.verify_no_duplicate_assets()
        self.removal_manifest.load()

        to_upload = self.local_assets_to_upload()
        self._cancel_tombstones(self.local_collector.assets(), dry_run)

        uploaded: list[str] = []
        for asset in to_upload:
            path = self.local_collector.full_path(asset)
            if not path.is_file():
                logger.warning("Skipping %s, local file missing: %s", asset.key, path)
                continue

            logger.info("Uploading %s...", asset.key)
            if not dry_run:
                self.upload_asset(asset)
            uploaded.append(asset.key)

        if not dry_run:
            self.removal_manifest.save()
        self.remote_collector.clear_cache()

        logger.info(
            "%s %d asset(s) to %s",
            "Would upload" if dry_run else "Uploaded",
            len(uploaded),
            self.store.name,
        )
        return uploaded

    # ------------------------------------------------------------------
    # Clean
    # ------------------------------------------------------------------

    def _retired_asset_expired(
        self, asset: RemoteAsset, now: datetime, removed_ttl: timedelta, dry_run: bool
    ) -> bool:
        """Decide a version of a logical name no longer in the build.

        The first sighting only records a tombstone. Deletion happens on
        a later run once the tombstone is older than ``removed_ttl``. The
        tombstone itself is dropped only after the object is gone.
        """
        removed_at = self.removal_manifest.removed_at(asset.key)
        if removed_at is None:
            logger.info("Marking %s as removed", asset.key)
            if not dry_run:
                self.removal_manifest.set(asset.key, now)
            return False

        return now - removed_at >= removed_ttl

    def _versions_to_delete(
        self,
        versions: list[RemoteAsset],
        current: Optional[LocalAsset],
        now: datetime,
        version_limit: int,
        version_ttl: timedelta,
        removed_ttl: timedelta,
        dry_run: bool,
    ) -> list[str]:
        if current is not None and current.key in self.removal_manifest and not dry_run:
            self.removal_manifest.delete(current.key)

        candidates = [v for v in versions if current is None or v.key != current.key]
        candidates.sort(key=lambda v: _aware(v.last_modified), reverse=True)

        doomed = []
        for index, version in enumerate(candidates):
            if current is None:
                if self._retired_asset_expired(version, now, removed_ttl, dry_run):
                    doomed.append(version.key)
                continue

            if version.key in self.removal_manifest and not dry_run:
                self.removal_manifest.delete(version.key)

            age = max(now - _aware(version.last_modified), timedelta(0))
            if age < version_ttl or index < version_limit:
                continue
            doomed.append(version.key)

        return doomed

    def _prune_stale_tombstones(self, dry_run: bool) -> None:
        """Forget tombstones for keys that no longer exist in the store."""
        remote_keys = set(self.remote_collector.asset_paths())
        for key in self.removal_manifest.keys():
            if key not in remote_keys:
                logger.debug("Pruning tombstone for missing object %s", key)
                if not dry_run:
                    self.removal_manifest.delete(key)

    def clean(
        self,
        version_limit: int = 2,
        version_ttl: Duration = 3600,
        removed_ttl: Duration = 172800,
        dry_run: bool = False,
    ) -> list[str]:
        """Delete old asset versions that have fallen out of retention.

        By default keeps the current version, two backups, anything
        written in the past hour, and retired assets for 48 hours after
        they were first seen missing from the build.

        Args:
            version_limit: Old versions to keep per active logical name.
            version_ttl: Minimum age before an old version may go.
            removed_ttl: Minimum tombstone age before a retired asset may go.
            dry_run: Report what would be deleted without touching the store.

        Returns:
            Keys deleted (or that would be deleted in a dry run). Keys the
            store failed to delete are left out and keep their tombstone.
        """
        self.verify_no_duplicate_assets()

        logger.info("Cleaning assets from %s", self.store.name)
        if self.local_assets_to_upload():
            logger.warning(
                "Please upload latest asset versions to the store before cleaning."
            )
            return []

        self.removal_manifest.load()

        now = self.now()
        version_ttl = _as_timedelta(version_ttl)
        removed_ttl = _as_timedelta(removed_ttl)
        local_map = self.local_collector.asset_map()

        to_delete: list[str] = []
        for logical_name, versions in self.remote_collector.grouped_assets().items():
            to_delete.extend(
                self._versions_to_delete(
                    versions,
                    local_map.get(logical_name),
                    now,
                    version_limit,
                    version_ttl,
                    removed_ttl,
                    dry_run,
                )
            )

        self._prune_stale_tombstones(dry_run)

        deleted = to_delete
        if to_delete and not dry_run:
            failed: set[str] = set()
            for batch in chunked(to_delete, MAX_DELETE_BATCH):
                logger.info("Deleting %d asset(s) from %s", len(batch), self.store.name)
                failed.update(self.store.delete_objects(batch))

            deleted = [key for key in to_delete if key not in failed]
            for key in deleted:
                self.removal_manifest.delete(key)
            if failed:
                logger.warning(
                    "%d asset(s) could not be deleted and will be retried", len(failed)
                )

        if not dry_run:
            self.removal_manifest.save()
        self.remote_collector.clear_cache()

        return deleted

    # ------------------------------------------------------------------
    # Deploy / status
    # ------------------------------------------------------------------

    def deploy(
        self,
        clean: bool = True,
        before_clean: Optional[Callable[[], None]] = None,
        dry_run: bool = False,
        **clean_options: Any,
    ) -> dict[str, list[str]]:
        """Upload, run the optional hook, then clean.

        Args:
            clean: Run the clean pass after uploading.
            before_clean: Called between upload and clean (e.g. to
                restart app servers onto the new asset versions).
            dry_run: Passed to both passes.
            **clean_options: Forwarded to :meth:`clean`.

        Returns:
            Dict with ``uploaded`` and ``deleted`` key lists.
        """
        uploaded = self.upload(dry_run=dry_run)
        if before_clean is not None:
            before_clean()
        deleted = self.clean(dry_run=dry_run, **clean_options) if clean else []
        return {"uploaded": uploaded, "deleted": deleted}

    def status(self) -> dict:
        """Summarize local vs remote state without changing anything.

        Returns:
            Dict with store name, counts, pending uploads and tombstones.
        """
        self.removal_manifest.load()
        groups = self.remote_collector.grouped_assets()
        pending = [a.key for a in self.local_assets_to_upload()]

        return {
            "store": self.store.name,
            "local_assets": len(self.local_collector.assets()),
            "remote_assets": len(self.remote_collector.assets()),
            "logical_names": len(groups),
            "pending_uploads": pending,
            "tombstones": self.removal_manifest.to_dict(),
        }
