"""Metadata validator — check parsed package metadata against registry limits.

Pure functions. ``check_metadata`` collects every problem (useful for
reporting), ``validate_metadata`` raises on the first one. Nothing here
touches the store, so a failure never leaves partial state behind.
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import quote, urlsplit

from gallery.config import DEFAULT_MAX_PACKAGE_ID_LENGTH
from gallery.errors import ValidationFailure
from gallery.registry.frameworks import is_nested_portable_profile, short_names
from gallery.registry.metadata import PackageMetadata
from gallery.registry.versioning import parse_version, parse_version_range

FIELD_LIMITS = {
    "Authors": 4000,
    "Copyright": 4000,
    "Description": 4000,
    "IconUrl": 4000,
    "LicenseUrl": 4000,
    "ProjectUrl": 4000,
    "Summary": 4000,
    "Tags": 4000,
    "Title": 256,
    "Version": 64,
    "Language": 20,
}
MAX_DEPENDENCY_RANGE_LENGTH = 256
# Signed 16-bit bound kept for legacy clients reading the flattened column.
MAX_FLATTENED_DEPENDENCIES_LENGTH = 32767

_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"


def encode_url(value: Optional[str], field: str = "Url") -> Optional[str]:
    """Return the percent-encoded absolute form of *value*, or None if empty."""
    if not value or not value.strip():
        return None
    encoded = quote(value.strip(), safe=_URL_SAFE)
    parts = urlsplit(encoded)
    if not parts.scheme or not parts.netloc:
        raise ValidationFailure(f"'{value}' is not an absolute URL", field=field)
    return encoded


def check_metadata(
    metadata: PackageMetadata,
    max_id_length: int = DEFAULT_MAX_PACKAGE_ID_LENGTH,
) -> list[ValidationFailure]:
    """Validate *metadata* and return every failure found. Empty means valid."""
    issues: list[ValidationFailure] = []

    if len(metadata.id) > max_id_length:
        issues.append(ValidationFailure.too_long("Id", max_id_length))

    text_fields = {
        "Authors": metadata.flattened_authors,
        "Copyright": metadata.copyright,
        "Description": metadata.description,
        "Summary": metadata.summary,
        "Tags": metadata.tags,
        "Title": metadata.title,
        "Version": metadata.version,
        "Language": metadata.language,
    }
    for field_name, value in text_fields.items():
        if value and len(value) > FIELD_LIMITS[field_name]:
            issues.append(ValidationFailure.too_long(field_name, FIELD_LIMITS[field_name]))

    for field_name, value in (
        ("IconUrl", metadata.icon_url),
        ("LicenseUrl", metadata.license_url),
        ("ProjectUrl", metadata.project_url),
    ):
        try:
            encoded = encode_url(value, field_name)
        except ValidationFailure as e:
            issues.append(e)
            continue
        if encoded and len(encoded) > FIELD_LIMITS[field_name]:
            issues.append(ValidationFailure.too_long(field_name, FIELD_LIMITS[field_name]))

    if len(metadata.version) <= FIELD_LIMITS["Version"]:
        try:
            parse_version(metadata.version)
        except ValidationFailure as e:
            issues.append(e)

    issues.extend(_check_dependencies(metadata, max_id_length))
    return issues


def validate_metadata(
    metadata: PackageMetadata,
    max_id_length: int = DEFAULT_MAX_PACKAGE_ID_LENGTH,
) -> None:
    """Raise the first ``ValidationFailure`` found in *metadata*."""
    issues = check_metadata(metadata, max_id_length)
    if issues:
        raise issues[0]


def resolve_supported_frameworks(descriptors: Iterable[Optional[str]]) -> Optional[list[str]]:
    """Short-name and validate supported framework descriptors.

    Returns the short names to record on the version. If any descriptor
    has no short name, validation is skipped and ``None`` is returned:
    the upload goes through without framework information.
    """
    names = short_names(descriptors)
    if any(name is None for name in names):
        return None
    validate_supported_frameworks(names)
    return names


def validate_supported_frameworks(names: Iterable[Optional[str]]) -> None:
    """Reject portable frameworks that nest a profile of their own."""
    for name in names:
        if is_nested_portable_profile(name):
            raise ValidationFailure(
                f"The package framework '{name}' is not supported. Frameworks within "
                "the portable profile are not allowed to have profiles themselves.",
                field="SupportedFrameworks",
            )


def _check_dependencies(
    metadata: PackageMetadata, max_id_length: int
) -> list[ValidationFailure]:
    issues: list[ValidationFailure] = []
    if not metadata.dependency_groups:
        return issues

    for group in metadata.dependency_groups:
        for dep in group.packages:
            if dep.id and len(dep.id) > max_id_length:
                issues.append(ValidationFailure.too_long("Dependency.Id", max_id_length))
            if len(dep.version_range) > MAX_DEPENDENCY_RANGE_LENGTH:
                issues.append(
                    ValidationFailure.too_long(
                        "Dependency.VersionSpec", MAX_DEPENDENCY_RANGE_LENGTH
                    )
                )
                continue
            try:
                parse_version_range(dep.version_range)
            except ValueError as e:
                issues.append(
                    ValidationFailure(str(e), field="Dependency.VersionSpec")
                )

    if len(metadata.flattened_dependencies) > MAX_FLATTENED_DEPENDENCIES_LENGTH:
        issues.append(
            ValidationFailure.too_long("Dependencies", MAX_FLATTENED_DEPENDENCIES_LENGTH)
        )
    return issues
