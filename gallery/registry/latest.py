"""Latest-version bookkeeping.

Every time a registration's version set or listing state changes, the
``is_latest`` / ``is_latest_stable`` flags are recomputed from scratch:

1. clear both flags everywhere (stamping ``last_updated`` on each cleared version)
2. pool = versions that are listed and not deleted
3. the highest version in the pool becomes latest
4. if it is stable it is also latest-stable, otherwise the highest stable
   version in the pool (if any) is latest-stable

So latest and latest-stable can point at two different versions when the
newest listed version is a prerelease.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Optional

from gallery.errors import InvariantViolation
from gallery.registry.models import PackageVersion, Registration, utcnow
from gallery.registry.versioning import parse_version

logger = logging.getLogger(__name__)


class LatestState(NamedTuple):
    latest: Optional[PackageVersion]
    latest_stable: Optional[PackageVersion]


def update_is_latest(registration: Registration) -> LatestState:
    """Recompute the latest flags across all versions of *registration*."""
    now = utcnow()

    for version in registration.versions:
        if version.is_latest or version.is_latest_stable:
            version.is_latest = False
            version.is_latest_stable = False
            version.last_updated = now

    pool = [v for v in registration.versions if v.listed and not v.deleted]
    newest = find_newest(pool)
    if newest is None:
        logger.info("Package %s has no listed versions; no latest version", registration.id)
        return LatestState(None, None)

    newest.is_latest = True
    newest.last_updated = now

    if not newest.is_prerelease:
        newest.is_latest_stable = True
        stable = newest
    else:
        stable = find_newest(v for v in pool if not v.is_prerelease)
        if stable is not None:
            stable.is_latest_stable = True
            stable.last_updated = now

    logger.info(
        "Package %s latest=%s latest_stable=%s",
        registration.id,
        newest.version,
        stable.version if stable else None,
    )
    return LatestState(newest, stable)


def find_newest(versions: Iterable[PackageVersion]) -> Optional[PackageVersion]:
    """Return the version with the highest parsed version number.

    Two candidates with equal version numbers mean the uniqueness rule was
    broken somewhere upstream; that is reported, never resolved.
    """
    best: Optional[PackageVersion] = None
    best_parsed = None
    tied = False
    for candidate in versions:
        parsed = parse_version(candidate.version)
        if best is None or parsed > best_parsed:
            best, best_parsed, tied = candidate, parsed, False
        elif parsed == best_parsed:
            tied = True

    if tied:
        raise InvariantViolation(
            f"Package {best.package_id} has more than one version equal to {best_parsed}"
        )
    return best
