"""Parsed package metadata — the value handed to the core by the artifact reader.

The real artifact reader lives outside this package. ``load_manifest``
reads the same information from a YAML manifest, which is what the CLI
and the tests use.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_HASH_ALGORITHM = "SHA512"


@dataclass
class DependencySpec:
    """One dependency entry inside a dependency group."""

    id: str
    version_range: str = ""


@dataclass
class DependencyGroup:
    """Dependencies that apply to one target framework ("" = all)."""

    target_framework: str = ""
    packages: list[DependencySpec] = field(default_factory=list)


@dataclass
class PackageMetadata:
    """Metadata read from an uploaded package."""

    id: str
    version: str
    title: str = ""
    description: str = ""
    summary: str = ""
    release_notes: str = ""
    authors: list[str] = field(default_factory=list)
    copyright: str = ""
    language: str = ""
    tags: str = ""
    icon_url: str = ""
    license_url: str = ""
    project_url: str = ""
    min_client_version: str = ""
    require_license_acceptance: bool = False
    dependency_groups: list[DependencyGroup] = field(default_factory=list)
    # Raw descriptors as reported by the artifact; short-named on validation.
    supported_frameworks: list[Optional[str]] = field(default_factory=list)

    @property
    def flattened_authors(self) -> str:
        return flatten_authors(self.authors)

    @property
    def flattened_dependencies(self) -> str:
        return flatten_dependency_groups(self.dependency_groups)


@dataclass
class PackageStreamMetadata:
    """Attributes of the uploaded artifact stream."""

    hash: str
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    size: int = 0

    @classmethod
    def from_file(cls, path: str | Path) -> "PackageStreamMetadata":
        """Hash an artifact on disk (SHA-512, base64, like the upload path)."""
        digest = hashlib.sha512()
        size = 0
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                digest.update(chunk)
                size += len(chunk)
        return cls(
            hash=base64.b64encode(digest.digest()).decode("ascii"),
            hash_algorithm=DEFAULT_HASH_ALGORITHM,
            size=size,
        )


def flatten_authors(authors: list[str]) -> str:
    return ", ".join(a for a in authors if a)


def flatten_dependency_groups(groups: list[DependencyGroup]) -> str:
    """Serialize dependency groups as ``id:range:framework|...``.

    A group with no packages still records its framework as ``::fx``.
    Legacy consumers parse this exact layout.
    """
    entries: list[str] = []
    for group in groups:
        if not group.packages:
            entries.append(f"::{group.target_framework}")
            continue
        for dep in group.packages:
            entries.append(f"{dep.id}:{dep.version_range}:{group.target_framework}")
    return "|".join(entries)


def load_manifest(path: str | Path) -> PackageMetadata:
    """Read a YAML package manifest into ``PackageMetadata``.

    Expected layout::

        package:
          id: Foo.Bar
          version: 1.0.0
          authors: [alice]
          dependencies:
            - framework: net45
              packages:
                - {id: Baz, range: "[1.0,2.0)"}
          frameworks: [net45]
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML: {e}") from e

    if not isinstance(data, dict) or "package" not in data:
        raise ValueError(f"{path}: missing top-level 'package' key")
    return metadata_from_dict(data["package"])


def metadata_from_dict(pkg: dict) -> PackageMetadata:
    if not pkg.get("id"):
        raise ValueError("Package manifest is missing 'id'")
    if not pkg.get("version"):
        raise ValueError("Package manifest is missing 'version'")

    authors = pkg.get("authors", [])
    if isinstance(authors, str):
        authors = [a.strip() for a in authors.split(",") if a.strip()]

    tags = pkg.get("tags", "")
    if isinstance(tags, list):
        tags = " ".join(str(t) for t in tags)

    groups = []
    for group in pkg.get("dependencies", []):
        if any(not d.get("id") for d in group.get("packages", [])):
            raise ValueError("Every dependency in the package manifest needs an 'id'")
        groups.append(
            DependencyGroup(
                target_framework=group.get("framework", "") or "",
                packages=[
                    DependencySpec(id=d["id"], version_range=str(d.get("range", "") or ""))
                    for d in group.get("packages", [])
                ],
            )
        )

    return PackageMetadata(
        id=str(pkg["id"]),
        # Unquoted YAML versions such as 1.10 arrive as floats; quote them.
        version=str(pkg["version"]),
        title=pkg.get("title", "") or "",
        description=pkg.get("description", "") or "",
        summary=pkg.get("summary", "") or "",
        release_notes=pkg.get("release_notes", "") or "",
        authors=[str(a) for a in authors],
        copyright=pkg.get("copyright", "") or "",
        language=pkg.get("language", "") or "",
        tags=tags or "",
        icon_url=pkg.get("icon_url", "") or "",
        license_url=pkg.get("license_url", "") or "",
        project_url=pkg.get("project_url", "") or "",
        min_client_version=str(pkg.get("min_client_version", "") or ""),
        require_license_acceptance=bool(pkg.get("require_license_acceptance", False)),
        dependency_groups=groups,
        supported_frameworks=list(pkg.get("frameworks", [])),
    )
