"""Version parsing, normalization and range matching.

Versions are semantic versions (SemVer 2.0) with an optional fourth
release component: ``major.minor[.patch[.revision]][-label][+metadata]``.
The prerelease label is a dot-separated list of identifiers, compared
case-insensitively with SemVer precedence. Build metadata never takes
part in identity or ordering.

Ranges use interval notation such as ``[1.0,2.0)``; a bare version means
"that version or higher".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Union

from gallery.errors import ValidationFailure

_VERSION_RE = re.compile(
    r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@total_ordering
@dataclass(frozen=True, eq=False)
class SemanticVersion:
    """A parsed version. Equality and ordering follow SemVer precedence."""

    major: int
    minor: int = 0
    patch: int = 0
    revision: int = 0
    release: str = ""
    metadata: str = ""

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """Parse *text*, raising ``ValidationFailure`` if it is not a version."""
        match = _VERSION_RE.match((text or "").strip())
        if not match:
            raise ValidationFailure(f"'{text}' is not a valid version string", field="Version")

        major, minor, patch, revision, release, metadata = match.groups()
        release = release or ""
        for identifier in release.split(".") if release else []:
            # SemVer forbids leading zeros in numeric identifiers.
            if identifier.isdigit() and len(identifier) > 1 and identifier[0] == "0":
                raise ValidationFailure(f"'{text}' is not a valid version string", field="Version")

        return cls(
            major=int(major),
            minor=int(minor or 0),
            patch=int(patch or 0),
            revision=int(revision or 0),
            release=release,
            metadata=metadata or "",
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release)

    @property
    def normalized(self) -> str:
        """``major.minor.patch`` (plus a non-zero revision) and the label."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.release:
            text += f"-{self.release}"
        return text

    def _key(self) -> tuple:
        if not self.release:
            label: tuple = (1,)
        else:
            label = (0, tuple(_identifier_key(i) for i in self.release.split(".")))
        return (self.major, self.minor, self.patch, self.revision, label)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = self.normalized
        if self.metadata:
            text += f"+{self.metadata}"
        return text


def _identifier_key(identifier: str) -> tuple:
    # Numeric identifiers sort numerically and before alphanumeric ones.
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier.lower())


def parse_version(text: str) -> SemanticVersion:
    return SemanticVersion.parse(text)


def normalize_version(text: str) -> str:
    """Return the canonical lookup form of a version string.

    The release is padded to three components and a zero fourth component
    is dropped, so ``1.0``, ``1.0.0`` and ``1.0.0.0`` share one form. The
    prerelease label is kept as written; build metadata is dropped.
    """
    return parse_version(text).normalized


def is_prerelease(text: str) -> bool:
    return parse_version(text).is_prerelease


@dataclass(frozen=True)
class VersionRange:
    """An interval of versions. A missing bound is unbounded."""

    min_version: Optional[SemanticVersion] = None
    min_inclusive: bool = True
    max_version: Optional[SemanticVersion] = None
    max_inclusive: bool = False

    def satisfies(self, version: SemanticVersion) -> bool:
        if self.min_version is not None:
            if version < self.min_version or (version == self.min_version and not self.min_inclusive):
                return False
        if self.max_version is not None:
            if version > self.max_version or (version == self.max_version and not self.max_inclusive):
                return False
        return True


ALL_VERSIONS = VersionRange()


def parse_version_range(text: str) -> VersionRange:
    """Parse a dependency range.

    Accepted forms:

    - ``""`` — any version
    - ``1.0`` — 1.0 or higher
    - ``[1.0]`` — exactly 1.0
    - ``[1.0,2.0)``, ``(1.0,]``, ``(,2.0]`` — interval notation

    Raises ``ValueError`` when the expression cannot be understood.
    """
    text = (text or "").strip()
    if not text:
        return ALL_VERSIONS

    if text[0] not in "[(":
        return VersionRange(min_version=_bound(text), min_inclusive=True)

    if len(text) < 3 or text[-1] not in "])":
        raise ValueError(f"Invalid version range '{text}'")
    min_inclusive = text[0] == "["
    max_inclusive = text[-1] == "]"
    inner = text[1:-1]

    if "," not in inner:
        # Only "[x]" is meaningful without a comma.
        if not (min_inclusive and max_inclusive) or not inner.strip():
            raise ValueError(f"Invalid version range '{text}'")
        exact = _bound(inner)
        return VersionRange(exact, True, exact, True)

    low, _, high = inner.partition(",")
    if "," in high:
        raise ValueError(f"Invalid version range '{text}'")
    low, high = low.strip(), high.strip()
    if not low and not high:
        raise ValueError(f"Invalid version range '{text}'")

    min_version = _bound(low) if low else None
    max_version = _bound(high) if high else None
    if min_version is not None and max_version is not None:
        if min_version > max_version or (
            min_version == max_version and not (min_inclusive and max_inclusive)
        ):
            raise ValueError(f"Invalid version range '{text}': empty interval")
    return VersionRange(min_version, min_inclusive, max_version, max_inclusive)


def range_satisfied_by(range_text: str, version: Union[str, SemanticVersion]) -> bool:
    """True when *version* falls inside *range_text*. Prereleases count.

    Raises ``ValueError`` for an unparseable range.
    """
    if not isinstance(version, SemanticVersion):
        version = parse_version(version)
    return parse_version_range(range_text).satisfies(version)


def _bound(text: str) -> SemanticVersion:
    try:
        return SemanticVersion.parse(text.strip())
    except ValidationFailure as e:
        raise ValueError(f"Invalid version '{text}' in range") from e
