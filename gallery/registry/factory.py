"""Version factory — turn validated upload metadata into a version record."""

from __future__ import annotations

import logging

from gallery.auth.models import User
from gallery.errors import ConflictFailure
from gallery.registry.metadata import PackageMetadata, PackageStreamMetadata
from gallery.registry.models import PackageDependency, PackageVersion, Registration
from gallery.registry.validator import encode_url, resolve_supported_frameworks
from gallery.registry.versioning import normalize_version, parse_version

logger = logging.getLogger(__name__)


def parse_tags(tags: str) -> str:
    """Collapse comma/semicolon/whitespace separated tags to single spaces."""
    if not tags:
        return ""
    return " ".join(tags.replace(",", " ").replace(";", " ").split())


def build_dependencies(metadata: PackageMetadata) -> list[PackageDependency]:
    dependencies: list[PackageDependency] = []
    for group in metadata.dependency_groups:
        if not group.packages:
            # Keeps "this framework has no dependencies" distinguishable
            # from "no information".
            dependencies.append(PackageDependency(id="", target_framework=group.target_framework))
            continue
        for dep in group.packages:
            dependencies.append(
                PackageDependency(
                    id=dep.id,
                    version_spec=dep.version_range,
                    target_framework=group.target_framework,
                )
            )
    return dependencies


def build_version(
    registration: Registration,
    metadata: PackageMetadata,
    stream: PackageStreamMetadata,
    user: User,
) -> PackageVersion:
    """Create the version record for an upload.

    Raises ``ConflictFailure`` if *registration* already has a version with
    the same normalized form. The record is not attached to the
    registration; the caller appends it and recomputes the latest flags.
    """
    normalized = normalize_version(metadata.version)
    existing = registration.find_version(normalized)
    if existing is not None:
        raise ConflictFailure(
            f"A package with identifier '{registration.id}' and version "
            f"'{existing.version}' already exists."
        )

    version = PackageVersion(
        # The exact text from the manifest; only the normalized copy is canonical.
        version=metadata.version,
        normalized_version=normalized,
        is_prerelease=parse_version(metadata.version).is_prerelease,
        listed=True,
        hash=stream.hash,
        hash_algorithm=stream.hash_algorithm,
        package_file_size=stream.size,
        title=metadata.title,
        description=metadata.description,
        summary=metadata.summary,
        release_notes=metadata.release_notes,
        copyright=metadata.copyright,
        language=metadata.language,
        flattened_authors=metadata.flattened_authors,
        authors=list(metadata.authors),
        tags=parse_tags(metadata.tags),
        icon_url=encode_url(metadata.icon_url, "IconUrl"),
        license_url=encode_url(metadata.license_url, "LicenseUrl"),
        project_url=encode_url(metadata.project_url, "ProjectUrl"),
        min_client_version=metadata.min_client_version or None,
        requires_license_acceptance=metadata.require_license_acceptance,
        user_key=user.key,
    )

    frameworks = resolve_supported_frameworks(metadata.supported_frameworks)
    if frameworks is not None:
        version.supported_frameworks = frameworks
    else:
        logger.warning(
            "Package %s %s reports a framework without a short name; "
            "framework validation skipped",
            registration.id,
            metadata.version,
        )

    version.dependencies = build_dependencies(metadata)
    version.flattened_dependencies = metadata.flattened_dependencies
    return version
