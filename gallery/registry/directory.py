"""Package directory — read-side lookups over the store."""

from __future__ import annotations

import logging
from typing import Optional

from gallery.auth.models import User
from gallery.errors import ValidationFailure
from gallery.registry.models import PackageVersion, Registration
from gallery.registry.versioning import SemanticVersion, normalize_version, parse_version, range_satisfied_by
from gallery.storage.store import GalleryStore

logger = logging.getLogger(__name__)


class PackageDirectory:
    """Lookups by id, id + version, owner, and reverse dependency."""

    def __init__(self, store: GalleryStore) -> None:
        self.store = store

    def find_registration(self, package_id: str) -> Optional[Registration]:
        if package_id is None:
            raise ValueError("package_id is required")
        return self.store.find_registration(package_id)

    def find_version(
        self,
        package_id: str,
        version: Optional[str] = None,
        allow_prerelease: bool = True,
    ) -> Optional[PackageVersion]:
        """Find one version of *package_id*.

        Without *version*: latest-stable, then (if prereleases are allowed)
        latest, then the highest version on record, for registrations whose
        flags were never computed. With *version*: exact match on the
        normalized form, so ``1.0`` finds ``1.0.0.0``.
        """
        if not package_id or not package_id.strip():
            raise ValueError("package_id is required")

        registration = self.store.find_registration(package_id)
        if registration is None:
            return None

        candidates = list(registration.versions)

        if version:
            try:
                normalized = normalize_version(version)
            except ValidationFailure:
                logger.debug("Lookup of %s with unparseable version %r", package_id, version)
                return None
            return next(
                (v for v in candidates if v.normalized_version.lower() == normalized.lower()),
                None,
            )

        if not allow_prerelease:
            candidates = [v for v in candidates if not v.is_prerelease]

        found = next((v for v in candidates if v.is_latest_stable), None)
        if found is None and allow_prerelease:
            found = next((v for v in candidates if v.is_latest), None)
        if found is None and candidates:
            logger.debug("No latest flags on %s; falling back to highest version", package_id)
            found = max(candidates, key=_sort_key)
        return found

    def find_by_owner(self, user: User, include_unlisted: bool = False) -> list[PackageVersion]:
        """One representative version per registration owned by *user*.

        Normally latest-stable, else latest. With *include_unlisted* the
        highest non-deleted version is the fallback whatever its listing
        state. Latest-stable always wins over the other candidate.
        """
        merged: dict[str, PackageVersion] = {}
        for registration in self.store.query_all(Registration):
            if not registration.is_owner(user):
                continue

            key = registration.id.casefold()
            if include_unlisted:
                live = [v for v in registration.versions if not v.deleted]
                if live:
                    merged[key] = max(live, key=_sort_key)
            else:
                latest = registration.latest
                if latest is not None:
                    merged[key] = latest

            stable = registration.latest_stable
            if stable is not None:
                merged[key] = stable

        return list(merged.values())

    def find_dependents(self, version: PackageVersion) -> list[PackageVersion]:
        """Versions of other packages whose dependency range admits *version*."""
        target_id = version.package_id.casefold()
        target_version = parse_version(version.version)

        dependents: list[PackageVersion] = []
        for registration in self.store.query_all(Registration):
            if registration.id.casefold() == target_id:
                continue
            for candidate in registration.versions:
                if any(
                    dep.id.casefold() == target_id
                    and _range_admits(dep.version_spec, target_version, candidate)
                    for dep in candidate.dependencies
                ):
                    dependents.append(candidate)
        return dependents


def _sort_key(version: PackageVersion) -> SemanticVersion:
    return parse_version(version.version)


def _range_admits(spec: str, target: SemanticVersion, owner: PackageVersion) -> bool:
    try:
        return range_satisfied_by(spec, target)
    except ValueError:
        logger.warning("Skipping unparseable range %r on %s", spec, owner.qualified_id)
        return False
