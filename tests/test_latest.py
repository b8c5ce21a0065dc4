"""Tests for latest / latest-stable recomputation."""

import pytest

from gallery.auth.models import User
from gallery.errors import InvariantViolation
from gallery.registry.latest import find_newest, update_is_latest
from gallery.registry.models import PackageVersion, Registration
from gallery.registry.versioning import is_prerelease, normalize_version


def _registration(*versions: str) -> Registration:
    reg = Registration(id="Foo.Bar", owners=[User(key="alice")])
    for text in versions:
        reg.add_version(
            PackageVersion(
                version=text,
                normalized_version=normalize_version(text),
                is_prerelease=is_prerelease(text),
            )
        )
    return reg


def _get(reg: Registration, text: str) -> PackageVersion:
    return next(v for v in reg.versions if v.version == text)


def _flagged(reg: Registration):
    latest = [v.version for v in reg.versions if v.is_latest]
    stable = [v.version for v in reg.versions if v.is_latest_stable]
    return latest, stable


def test_single_stable_version_is_both():
    reg = _registration("1.0.0")
    state = update_is_latest(reg)
    assert state.latest is state.latest_stable is reg.versions[0]
    assert _flagged(reg) == (["1.0.0"], ["1.0.0"])


def test_prerelease_newest_splits_latest_and_stable():
    reg = _registration("1.0.0", "2.0.0-beta")
    update_is_latest(reg)
    assert _flagged(reg) == (["2.0.0-beta"], ["1.0.0"])


def test_stable_release_after_prerelease_takes_both():
    reg = _registration("1.0.0", "2.0.0-beta", "2.0.0")
    update_is_latest(reg)
    assert _flagged(reg) == (["2.0.0"], ["2.0.0"])
    assert not _get(reg, "2.0.0-beta").is_latest


def test_only_prereleases_have_no_stable():
    reg = _registration("1.0.0-alpha", "1.0.0-beta")
    state = update_is_latest(reg)
    assert state.latest_stable is None
    assert _flagged(reg) == (["1.0.0-beta"], [])


def test_ordering_is_numeric_not_lexical():
    reg = _registration("1.9.0", "1.10.0")
    update_is_latest(reg)
    assert _flagged(reg) == (["1.10.0"], ["1.10.0"])


def test_unlisted_and_deleted_versions_are_ignored():
    reg = _registration("1.0.0", "1.1.0", "1.2.0")
    _get(reg, "1.2.0").listed = False
    _get(reg, "1.1.0").deleted = True
    update_is_latest(reg)
    assert _flagged(reg) == (["1.0.0"], ["1.0.0"])


def test_unlisting_only_version_clears_flags():
    reg = _registration("1.0.0")
    update_is_latest(reg)
    reg.versions[0].listed = False

    state = update_is_latest(reg)

    assert state.latest is None and state.latest_stable is None
    assert _flagged(reg) == ([], [])


def test_recompute_clears_stale_flags():
    reg = _registration("1.0.0", "2.0.0")
    _get(reg, "1.0.0").is_latest = True
    _get(reg, "1.0.0").is_latest_stable = True
    update_is_latest(reg)
    assert _flagged(reg) == (["2.0.0"], ["2.0.0"])


def test_recompute_stamps_changed_versions():
    reg = _registration("1.0.0", "2.0.0")
    old = _get(reg, "1.0.0")
    old.is_latest = True
    old.last_updated = "2000-01-01T00:00:00+00:00"
    update_is_latest(reg)
    assert old.last_updated != "2000-01-01T00:00:00+00:00"


def test_equal_versions_are_an_invariant_violation():
    reg = _registration("1.0", "1.0.0")
    with pytest.raises(InvariantViolation):
        update_is_latest(reg)


def test_find_newest_empty():
    assert find_newest([]) is None
