"""Supported-framework descriptors and their short names.

The artifact reader hands us descriptors either already in short form
(``net45``, ``portable-net45+win8``) or in long form
(``.NETFramework,Version=v4.5,Profile=Client``). Anything we cannot
express as a short name maps to ``None``.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

# Long identifier (lowercased) -> (short prefix, dotted version)
_IDENTIFIERS: dict[str, tuple[str, bool]] = {
    ".netframework": ("net", False),
    "net": ("net", False),
    ".netstandard": ("netstandard", True),
    ".netcoreapp": ("netcoreapp", True),
    ".netplatform": ("dotnet", True),
    ".netcore": ("netcore", False),
    ".netmicroframework": ("netmf", False),
    ".netportable": ("portable", False),
    "silverlight": ("sl", False),
    "windowsphone": ("wp", False),
    "windowsphoneapp": ("wpa", False),
    "windows": ("win", False),
    "uap": ("uap", True),
    "monoandroid": ("monoandroid", False),
    "monotouch": ("monotouch", False),
    "monomac": ("monomac", False),
    "xamarin.ios": ("xamarinios", False),
    "xamarin.mac": ("xamarinmac", False),
    "native": ("native", False),
}

_UNREPRESENTABLE = {"unsupported", ""}

_SHORT_NAME_RE = re.compile(r"^[a-z][a-z.]*[0-9.]*(-[a-z0-9.+]+)*$")
_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+)*)$", re.IGNORECASE)
_PORTABLE_MEMBER_RE = re.compile(r"^[a-z]+[0-9.]*$")


def short_name(descriptor: Optional[str]) -> Optional[str]:
    """Return the short name for *descriptor*, or ``None`` if it has none."""
    if descriptor is None:
        return None
    text = descriptor.strip()
    if text.lower() in _UNREPRESENTABLE:
        return None
    if "," in text:
        return _short_name_from_long(text)
    lowered = text.lower()
    if _SHORT_NAME_RE.match(lowered):
        return lowered
    return None


def short_names(descriptors: Iterable[Optional[str]]) -> list[Optional[str]]:
    return [short_name(d) for d in descriptors]


def is_nested_portable_profile(name: Optional[str]) -> bool:
    """True for ``portable-*`` names that carry a profile of their own."""
    if not name:
        return False
    return name.lower().startswith("portable-") and len(name.split("-")) > 2


def _short_name_from_long(text: str) -> Optional[str]:
    parts = [p.strip() for p in text.split(",")]
    identifier = parts[0].lower()
    mapping = _IDENTIFIERS.get(identifier)
    if mapping is None:
        return None
    prefix, dotted = mapping

    version = ""
    profile = ""
    for part in parts[1:]:
        key, _, value = part.partition("=")
        key = key.strip().lower()
        value = value.strip()
        if key == "version":
            match = _VERSION_RE.match(value)
            if not match:
                return None
            version = match.group(1)
        elif key == "profile":
            profile = value
        else:
            return None

    if prefix == "portable":
        return _portable_short_name(profile)

    name = prefix + _format_version(version, dotted)
    if profile:
        name += f"-{profile.lower()}"
    return name


def _portable_short_name(profile: str) -> Optional[str]:
    # Numbered profiles ("Profile7") need a lookup table we do not carry.
    members = [m.strip().lower() for m in profile.split("+") if m.strip()]
    if not members or not all(_PORTABLE_MEMBER_RE.match(m) for m in members):
        return None
    if any(m.startswith("profile") for m in members):
        return None
    return "portable-" + "+".join(members)


def _format_version(version: str, dotted: bool) -> str:
    if not version:
        return ""
    components = version.split(".")
    while len(components) > 2 and components[-1] == "0":
        components.pop()
    if dotted:
        if len(components) == 1:
            components.append("0")
        return ".".join(components)
    if len(components) == 2 and components[1] == "0" and int(components[0]) >= 10:
        components.pop()
    if all(len(c) == 1 for c in components):
        return "".join(components)
    return ".".join(components)
