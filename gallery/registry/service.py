"""Package service — the write-side entry points of the registry.

``create_package`` runs the whole upload flow:

    validate metadata -> resolve registration -> build version
    -> attach to registration -> recompute latest flags -> commit -> notify index

Registration creation, version insertion and the latest-flag update are
committed together or not at all.
"""

from __future__ import annotations

import logging
from typing import Optional

from gallery.auth.models import User
from gallery.config import GalleryConfig
from gallery.errors import InvariantViolation, NotFound
from gallery.indexing import IndexNotifier, NullIndexNotifier
from gallery.registry.directory import PackageDirectory
from gallery.registry.factory import build_version
from gallery.registry.latest import LatestState, update_is_latest
from gallery.registry.metadata import PackageMetadata, PackageStreamMetadata
from gallery.registry.models import PackageStatistics, PackageVersion, Registration, utcnow
from gallery.registry.resolver import RegistrationResolver
from gallery.registry.validator import resolve_supported_frameworks, validate_metadata
from gallery.storage.store import GalleryStore

logger = logging.getLogger(__name__)


class PackageService:
    """Creates, publishes and lists package versions."""

    def __init__(
        self,
        store: GalleryStore,
        notifier: Optional[IndexNotifier] = None,
        config: Optional[GalleryConfig] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier or NullIndexNotifier()
        self.config = config or GalleryConfig()
        self.resolver = RegistrationResolver(store)
        self.directory = PackageDirectory(store)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def ensure_valid(self, metadata: PackageMetadata) -> None:
        """Run every upload check without touching the store."""
        validate_metadata(metadata, self.config.max_package_id_length)
        resolve_supported_frameworks(metadata.supported_frameworks)

    def create_package(
        self,
        metadata: PackageMetadata,
        stream: PackageStreamMetadata,
        user: User,
        commit: bool = True,
    ) -> PackageVersion:
        """Register an uploaded package version.

        With ``commit=False`` the caller owns the unit of work: nothing is
        committed and the index is not notified. Otherwise the whole flow runs
        in one store transaction.
        """
        validate_metadata(metadata, self.config.max_package_id_length)

        if not commit:
            return self._stage_package(metadata, stream, user)

        with self.store.transaction():
            version = self._stage_package(metadata, stream, user)
        logger.info("Created %s by %s", version.qualified_id, user.key)
        self._notify_index(version.package_id, version.version)
        return version

    def _stage_package(
        self,
        metadata: PackageMetadata,
        stream: PackageStreamMetadata,
        user: User,
    ) -> PackageVersion:
        is_new = self.store.find_registration(metadata.id) is None
        registration = self.resolver.resolve(metadata.id, user)
        try:
            version = build_version(registration, metadata, stream, user)
        except Exception:
            if is_new:
                self.store.delete(registration)
            raise
        registration.add_version(version)
        self._recompute(registration)
        return version

    # ------------------------------------------------------------------
    # Listing state
    # ------------------------------------------------------------------

    def publish_package(self, package_id: str, version: str, commit: bool = True) -> PackageVersion:
        package = self.directory.find_version(package_id, version)
        if package is None:
            raise NotFound(f"A package with id '{package_id}' and version '{version}' does not exist")
        self.publish(package, commit=commit)
        return package

    def publish(self, package: PackageVersion, commit: bool = True) -> None:
        if package is None:
            raise ValueError("package is required")
        if package.deleted:
            raise InvariantViolation("A deleted package should never be listed!")

        package.published = utcnow()
        package.listed = True
        self._recompute(package.registration)

        if commit:
            self.store.commit()

    def mark_listed(self, package: PackageVersion, commit: bool = True) -> None:
        if package is None:
            raise ValueError("package is required")
        if package.listed:
            return
        if package.deleted:
            raise InvariantViolation("A deleted package should never be listed!")
        if package.is_latest or package.is_latest_stable:
            raise InvariantViolation("An unlisted package should never be latest or latest stable!")

        now = utcnow()
        package.listed = True
        package.last_updated = now
        package.last_edited = now
        self._recompute(package.registration)

        if commit:
            self.store.commit()
        logger.info("Listed %s", package.qualified_id)

    def mark_unlisted(self, package: PackageVersion, commit: bool = True) -> None:
        if package is None:
            raise ValueError("package is required")
        if not package.listed:
            return

        now = utcnow()
        package.listed = False
        package.last_updated = now
        package.last_edited = now
        if package.is_latest or package.is_latest_stable:
            self._recompute(package.registration)

        if commit:
            self.store.commit()
        logger.info("Unlisted %s", package.qualified_id)

    def update_is_latest(self, registration: Registration, commit: bool = True) -> LatestState:
        """Recompute latest flags for *registration*; see ``gallery.registry.latest``."""
        state = self._recompute(registration)
        if commit:
            self.store.commit()
        return state

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def add_download_statistics(self, stats: PackageStatistics) -> None:
        # IP addresses are never stored.
        stats.ip_address = "unknown"
        self.store.insert(stats)
        self.store.commit()

    def set_license_report_visibility(self, package: PackageVersion, visible: bool, commit: bool = True) -> None:
        if package is None:
            raise ValueError("package is required")
        package.hide_license_report = not visible
        if commit:
            self.store.commit()

    def _recompute(self, registration: Optional[Registration]) -> LatestState:
        if registration is None:
            raise InvariantViolation("Package version is not attached to a registration")
        return update_is_latest(registration)

    def _notify_index(self, package_id: str, version: str) -> None:
        try:
            self.notifier.notify_changed(package_id, version)
        except Exception:
            # The version is already committed; the index catches up later.
            logger.warning("Search index notification failed for %s %s", package_id, version, exc_info=True)
