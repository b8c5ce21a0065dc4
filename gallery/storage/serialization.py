"""Dict conversion for stored entities.

Versions are stored inline under their registration; the back-reference
is rebuilt on load.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from gallery.auth.models import User
from gallery.registry.models import (
    OwnerRequest,
    PackageDependency,
    PackageStatistics,
    PackageVersion,
    Registration,
)

_VERSION_FIELDS = [f.name for f in fields(PackageVersion) if f.name != "registration"]


def _pick(cls: type, d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if k in cls.__dataclass_fields__}


def user_to_dict(u: User) -> dict:
    return {"key": u.key, "username": u.username, "email": u.email}


def user_from_dict(d: dict) -> User:
    return User(key=d["key"], username=d.get("username", ""), email=d.get("email", ""))


def version_to_dict(v: PackageVersion) -> dict:
    data = {name: getattr(v, name) for name in _VERSION_FIELDS}
    data["authors"] = list(v.authors)
    data["supported_frameworks"] = list(v.supported_frameworks)
    data["dependencies"] = [
        {"id": d.id, "version_spec": d.version_spec, "target_framework": d.target_framework}
        for d in v.dependencies
    ]
    return data


def version_from_dict(d: dict) -> PackageVersion:
    data = _pick(PackageVersion, d)
    data.pop("registration", None)
    data["dependencies"] = [PackageDependency(**_pick(PackageDependency, x)) for x in d.get("dependencies", [])]
    return PackageVersion(**data)


def registration_to_dict(r: Registration) -> dict:
    return {
        "id": r.id,
        "key": r.key,
        "download_count": r.download_count,
        "owners": [user_to_dict(u) for u in r.owners],
        "versions": [version_to_dict(v) for v in r.versions],
    }


def registration_from_dict(d: dict) -> Registration:
    registration = Registration(
        id=d["id"],
        key=d["key"],
        owners=[user_from_dict(u) for u in d.get("owners", [])],
        download_count=d.get("download_count", 0),
    )
    for v in d.get("versions", []):
        registration.add_version(version_from_dict(v))
    return registration


def owner_request_to_dict(r: OwnerRequest) -> dict:
    return {
        "key": r.key,
        "registration_key": r.registration_key,
        "requesting_owner_key": r.requesting_owner_key,
        "new_owner_key": r.new_owner_key,
        "confirmation_code": r.confirmation_code,
        "request_date": r.request_date,
    }


def owner_request_from_dict(d: dict) -> OwnerRequest:
    return OwnerRequest(**_pick(OwnerRequest, d))


def statistics_to_dict(s: PackageStatistics) -> dict:
    return {
        "key": s.key,
        "package_key": s.package_key,
        "timestamp": s.timestamp,
        "ip_address": s.ip_address,
        "user_agent": s.user_agent,
        "operation": s.operation,
    }


def statistics_from_dict(d: dict) -> PackageStatistics:
    return PackageStatistics(**_pick(PackageStatistics, d))
