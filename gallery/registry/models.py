"""Registry data models — registrations, versions, dependencies and owner requests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from gallery.auth.models import User


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_key() -> str:
    return str(uuid.uuid4())


class ConfirmOwnershipResult(str, Enum):
    """Outcome of confirming a pending ownership request."""

    success = "success"
    already_owner = "already_owner"
    failure = "failure"


@dataclass
class PackageDependency:
    """A dependency of one version on another package id."""

    id: str
    version_spec: str = ""
    target_framework: str = ""


@dataclass(eq=False)
class PackageVersion:
    """One published artifact under a registration.

    Content fields (``version``, ``hash`` ...) never change after creation.
    Listing state, edit metadata and the latest flags do.
    """

    version: str  # exact author-supplied text
    normalized_version: str
    registration: Optional["Registration"] = field(default=None, repr=False)
    key: str = field(default_factory=new_key)

    is_prerelease: bool = False
    listed: bool = True
    deleted: bool = False
    is_latest: bool = False
    is_latest_stable: bool = False

    hash: str = ""
    hash_algorithm: str = ""
    package_file_size: int = 0

    title: str = ""
    description: str = ""
    summary: str = ""
    release_notes: str = ""
    copyright: str = ""
    language: str = ""
    flattened_authors: str = ""
    authors: list[str] = field(default_factory=list)
    tags: str = ""
    icon_url: Optional[str] = None
    license_url: Optional[str] = None
    project_url: Optional[str] = None
    min_client_version: Optional[str] = None
    requires_license_acceptance: bool = False
    hide_license_report: bool = False

    dependencies: list[PackageDependency] = field(default_factory=list)
    flattened_dependencies: str = ""
    supported_frameworks: list[str] = field(default_factory=list)

    created: str = ""
    last_updated: str = ""
    last_edited: str = ""
    published: str = ""
    user_key: str = ""

    def __post_init__(self) -> None:
        now = utcnow()
        if not self.created:
            self.created = now
        if not self.last_updated:
            self.last_updated = now
        if not self.published:
            self.published = now

    @property
    def package_id(self) -> str:
        return self.registration.id if self.registration else ""

    @property
    def qualified_id(self) -> str:
        return f"{self.package_id}@{self.version}"


@dataclass(eq=False)
class Registration:
    """Identity-level record for a package id.

    Owns its versions (kept in creation order) and its owner set.
    """

    id: str
    key: str = field(default_factory=new_key)
    owners: list[User] = field(default_factory=list)
    versions: list[PackageVersion] = field(default_factory=list, repr=False)
    download_count: int = 0

    def is_owner(self, user: User) -> bool:
        return any(owner.key == user.key for owner in self.owners)

    def add_owner(self, user: User) -> bool:
        """Add *user*; adding a present owner is a no-op. Returns True if added."""
        if self.is_owner(user):
            return False
        self.owners.append(user)
        return True

    def remove_owner(self, user: User) -> bool:
        before = len(self.owners)
        self.owners = [o for o in self.owners if o.key != user.key]
        return len(self.owners) < before

    def add_version(self, version: PackageVersion) -> None:
        version.registration = self
        self.versions.append(version)

    def find_version(self, normalized_version: str) -> Optional[PackageVersion]:
        for v in self.versions:
            if v.normalized_version.lower() == normalized_version.lower():
                return v
        return None

    @property
    def latest(self) -> Optional[PackageVersion]:
        return next((v for v in self.versions if v.is_latest), None)

    @property
    def latest_stable(self) -> Optional[PackageVersion]:
        return next((v for v in self.versions if v.is_latest_stable), None)


@dataclass(eq=False)
class OwnerRequest:
    """A pending, token-gated invitation to co-own a registration."""

    registration_key: str
    requesting_owner_key: str
    new_owner_key: str
    confirmation_code: str
    request_date: str = ""
    key: str = field(default_factory=new_key)

    def __post_init__(self) -> None:
        if not self.request_date:
            self.request_date = utcnow()


@dataclass(eq=False)
class PackageStatistics:
    """A single download event."""

    package_key: str
    timestamp: str = ""
    ip_address: str = ""
    user_agent: str = ""
    operation: str = ""
    key: str = field(default_factory=new_key)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = utcnow()
