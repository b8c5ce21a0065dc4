"""Tests for version parsing, normalization and ranges."""

import pytest

from gallery.errors import ValidationFailure
from gallery.registry.versioning import (
    SemanticVersion,
    is_prerelease,
    normalize_version,
    parse_version,
    parse_version_range,
    range_satisfied_by,
)


def test_normalize_pads_and_trims_release():
    assert normalize_version("1.0") == "1.0.0"
    assert normalize_version("1.0.0") == "1.0.0"
    assert normalize_version("1.0.0.0") == "1.0.0"
    assert normalize_version("1.0.0.1") == "1.0.0.1"
    assert normalize_version("1") == "1.0.0"


def test_normalize_keeps_label_and_drops_metadata():
    assert normalize_version("2.0.0-beta") == "2.0.0-beta"
    assert normalize_version("2.0-rc.1") == "2.0.0-rc.1"
    assert normalize_version("1.0+build.5") == "1.0.0"
    assert normalize_version("1.0.0-alpha") != normalize_version("1.0.0-a")
    assert normalize_version("1.0.0-beta.2") != normalize_version("1.0.0-beta2")


@pytest.mark.parametrize("text", ["not-a-version", "1.0.0-", "1.0.0-beta..1", "1.0.0-beta.01", "1.2.3.4.5", ""])
def test_invalid_version_is_validation_failure(text):
    with pytest.raises(ValidationFailure) as exc:
        normalize_version(text)
    assert exc.value.field == "Version"


@pytest.mark.parametrize("text", ["1.0.0-nightly", "1.0.0-alpha.beta", "1.0.0-ci-20200101", "1.0.0-x.7.z.92"])
def test_semver_prerelease_labels_are_accepted(text):
    assert is_prerelease(text)
    assert normalize_version(text) == text


def test_is_prerelease():
    assert is_prerelease("2.0.0-beta")
    assert is_prerelease("1.0.0-alpha.2")
    assert is_prerelease("1.0.1-1")
    assert not is_prerelease("2.0.0")
    assert not is_prerelease("2.0.0+build")


def test_semver_precedence():
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
        "1.0.0.1",
        "1.0.1",
        "1.10.0",
    ]
    parsed = [parse_version(v) for v in ordered]
    assert sorted(reversed(parsed)) == parsed


def test_label_comparison_ignores_case_and_metadata():
    assert parse_version("1.0.0-Beta") == parse_version("1.0.0-beta")
    assert parse_version("1.0.0+a") == parse_version("1.0.0+b")
    assert parse_version("1.0") == parse_version("1.0.0.0")
    assert hash(parse_version("1.0")) == hash(parse_version("1.0.0"))


def test_numeric_identifiers_sort_before_alphanumeric():
    assert parse_version("1.0.0-1") < parse_version("1.0.0-a")


def test_str_round_trip():
    assert str(SemanticVersion.parse("1.2.3.4-rc.1+sha.abc")) == "1.2.3.4-rc.1+sha.abc"


def test_interval_range():
    assert range_satisfied_by("[1.0.0,2.0.0)", "1.5.0")
    assert range_satisfied_by("[1.0.0,2.0.0)", "1.0.0")
    assert not range_satisfied_by("[1.0.0,2.0.0)", "2.0.0")
    assert range_satisfied_by("(1.0,2.0]", "2.0.0")
    assert not range_satisfied_by("(1.0,2.0]", "1.0")


def test_exclusive_upper_bound_admits_its_prereleases():
    assert range_satisfied_by("[1.0.0,2.0.0)", "2.0.0-beta")
    assert not range_satisfied_by("[1.0.0,2.0.0)", "1.0.0-beta")


def test_open_ended_ranges():
    assert range_satisfied_by("(,2.0]", "0.1")
    assert range_satisfied_by("[1.0,)", "99.0")
    assert not range_satisfied_by("[1.0,)", "0.9")


def test_bare_version_is_minimum():
    assert range_satisfied_by("1.0", "1.0.0")
    assert range_satisfied_by("1.0", "3.2")
    assert not range_satisfied_by("1.0", "0.9")


def test_exact_range():
    assert range_satisfied_by("[1.0]", "1.0.0")
    assert not range_satisfied_by("[1.0]", "1.0.1")


def test_empty_range_matches_everything():
    assert range_satisfied_by("", "0.0.1")
    assert range_satisfied_by("", "5.0.0-beta")


def test_prereleases_are_considered():
    assert range_satisfied_by("[1.0,3.0)", "2.0.0-beta")


@pytest.mark.parametrize(
    "text",
    ["[1.0", "(1.0)", "[,]", "[1.0,2.0,3.0]", "[abc,2.0)", "~~1", ">=1.0", "[2.0,1.0]", "(1.0,1.0)"],
)
def test_invalid_ranges(text):
    with pytest.raises(ValueError):
        parse_version_range(text)
