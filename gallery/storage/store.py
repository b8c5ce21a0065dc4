"""Unit-of-work store for registrations, owner requests and download statistics.

Changes are staged with ``insert``/``delete`` (and by mutating entities
obtained from the store) and become visible to other readers of the
backing files only on ``commit``. A failed commit rolls the store back to
the last committed snapshot; entities fetched before the failure are
stale afterwards and must be looked up again.

Several stores may share one directory. ``commit`` holds an exclusive
file lock, re-reads the files and refuses to write (``ConflictFailure``)
when another store committed since this one last read them. Files are
written to temporaries first and moved into place only once all of them
are written.

Storage path (when ``base_dir`` is given) holds:
- ``registrations.json`` -- registrations with owners and versions inline
- ``owner_requests.json`` -- pending ownership requests
- ``statistics.json`` -- download events
- ``.gallery.lock`` -- writer lock
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import ContextManager, Iterator, Optional, TypeVar

from filelock import FileLock

from gallery.errors import ConflictFailure, InvariantViolation, StorageFailure
from gallery.registry.models import OwnerRequest, PackageStatistics, Registration
from gallery.storage import serialization

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITY_TYPES = (Registration, OwnerRequest, PackageStatistics)
LOCK_FILENAME = ".gallery.lock"

_CODECS = {
    Registration: (
        "registrations.json",
        serialization.registration_to_dict,
        serialization.registration_from_dict,
    ),
    OwnerRequest: (
        "owner_requests.json",
        serialization.owner_request_to_dict,
        serialization.owner_request_from_dict,
    ),
    PackageStatistics: (
        "statistics.json",
        serialization.statistics_to_dict,
        serialization.statistics_from_dict,
    ),
}


class GalleryStore:
    """In-memory unit of work, optionally persisted as JSON files."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base = Path(base_dir) if base_dir is not None else None
        self._file_lock: Optional[FileLock] = None
        if self._base is not None:
            self._base.mkdir(parents=True, exist_ok=True)
            self._file_lock = FileLock(str(self._base / LOCK_FILENAME))
        self._committed: dict[type, list] = {t: [] for t in ENTITY_TYPES}
        self._inserted: list = []
        self._deleted: list = []
        with self._locked():
            self._snapshot = self._read_files() if self._base is not None else self._empty_snapshot()
        self._restore(self._snapshot)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _empty_snapshot() -> dict[type, list[dict]]:
        return {t: [] for t in ENTITY_TYPES}

    def _locked(self) -> ContextManager:
        return self._file_lock if self._file_lock is not None else nullcontext()

    def _read_files(self) -> dict[type, list[dict]]:
        snapshot = self._empty_snapshot()
        for entity_type, (filename, _, _) in _CODECS.items():
            path = self._base / filename
            if not path.exists():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                raise StorageFailure(f"Could not read {path}: {e}") from e
            if not isinstance(data, list):
                raise StorageFailure(f"{path} does not contain a list")
            snapshot[entity_type] = data
        return snapshot

    def _write_files(self, snapshot: dict[type, list[dict]]) -> None:
        """Write every file to a temporary, then move them all into place."""
        staged: list[tuple[str, Path]] = []
        try:
            for entity_type, (filename, _, _) in _CODECS.items():
                staged.append((self._write_temp(filename, snapshot[entity_type]), self._base / filename))
        except OSError:
            for tmp_path, _ in staged:
                Path(tmp_path).unlink(missing_ok=True)
            raise
        for tmp_path, path in staged:
            os.replace(tmp_path, path)

    def _write_temp(self, filename: str, records: list[dict]) -> str:
        fd, tmp_path = tempfile.mkstemp(dir=self._base, prefix=f".{filename}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(records, indent=2, default=str))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        return tmp_path

    def _dump(self, view: dict[type, list]) -> dict[type, list[dict]]:
        return {t: [_CODECS[t][1](e) for e in view[t]] for t in ENTITY_TYPES}

    def _restore(self, snapshot: dict[type, list[dict]]) -> None:
        self._committed = {t: [_CODECS[t][2](d) for d in snapshot[t]] for t in ENTITY_TYPES}
        self._inserted = []
        self._deleted = []

    def _staged_view(self) -> dict[type, list]:
        view = {t: [e for e in self._committed[t] if not _contains(self._deleted, e)] for t in ENTITY_TYPES}
        for entity in self._inserted:
            view[type(entity)].append(entity)
        return view

    @staticmethod
    def _check_constraints(view: dict[type, list]) -> None:
        seen_ids: dict[str, Registration] = {}
        for registration in view[Registration]:
            folded = registration.id.casefold()
            if folded in seen_ids:
                raise ConflictFailure(
                    f"A package registration with id '{registration.id}' already exists"
                )
            seen_ids[folded] = registration
            if not registration.owners:
                raise InvariantViolation(
                    f"Package registration '{registration.id}' has no owners"
                )
            seen_versions: set[str] = set()
            for version in registration.versions:
                normalized = version.normalized_version.lower()
                if normalized in seen_versions:
                    raise ConflictFailure(
                        f"A package with id '{registration.id}' and version "
                        f"'{version.version}' already exists"
                    )
                seen_versions.add(normalized)

        pending: set[tuple[str, str]] = set()
        for request in view[OwnerRequest]:
            pair = (request.registration_key, request.new_owner_key)
            if pair in pending:
                raise ConflictFailure("An ownership request for this account is already pending")
            pending.add(pair)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def insert(self, entity: object) -> None:
        """Stage *entity* for insertion. Re-inserting a known entity is a no-op."""
        entity_type = _entity_type(entity)
        if _contains(self._deleted, entity):
            self._deleted = [e for e in self._deleted if e is not entity]
            return
        if _contains(self._inserted, entity) or _contains(self._committed[entity_type], entity):
            return
        self._inserted.append(entity)

    def delete(self, entity: object) -> None:
        """Stage *entity* for deletion."""
        entity_type = _entity_type(entity)
        if _contains(self._inserted, entity):
            self._inserted = [e for e in self._inserted if e is not entity]
        elif _contains(self._committed[entity_type], entity) and not _contains(self._deleted, entity):
            self._deleted.append(entity)

    def commit(self) -> None:
        """Apply staged changes, enforcing the storage uniqueness constraints.

        Raises ``ConflictFailure`` on a uniqueness violation, or when another
        store committed to the same directory since this one last read it.
        In that case the store is reloaded with the other writer's state.
        Raises ``StorageFailure`` if the files cannot be written. In every
        failure case staged changes are discarded.
        """
        with self._locked():
            if self._base is not None:
                on_disk = self._read_files()
                if on_disk != self._snapshot:
                    self._snapshot = on_disk
                    self.rollback()
                    raise ConflictFailure(
                        "The registry was changed by another writer; reload and retry"
                    )

            view = self._staged_view()
            try:
                self._check_constraints(view)
            except (ConflictFailure, InvariantViolation):
                self.rollback()
                raise

            snapshot = self._dump(view)
            if self._base is not None:
                try:
                    self._write_files(snapshot)
                except OSError as e:
                    self.rollback()
                    raise StorageFailure(f"Could not write store files in {self._base}: {e}") from e

        logger.debug(
            "Committed %d insert(s) and %d delete(s)", len(self._inserted), len(self._deleted)
        )
        self._committed = view
        self._inserted = []
        self._deleted = []
        self._snapshot = snapshot

    def rollback(self) -> None:
        """Discard staged changes and in-memory edits since the last commit."""
        self._restore(self._snapshot)

    @contextmanager
    def transaction(self) -> Iterator["GalleryStore"]:
        """Commit on success, roll back on any exception."""
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._inserted or self._deleted)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_all(self, entity_type: type[T]) -> Iterator[T]:
        """Lazily yield every live entity of *entity_type*, staged inserts included."""
        if entity_type not in self._committed:
            raise TypeError(f"{entity_type.__name__} is not a stored entity type")
        for entity in self._committed[entity_type]:
            if not _contains(self._deleted, entity):
                yield entity
        for entity in self._inserted:
            if isinstance(entity, entity_type):
                yield entity

    def find_registration(self, package_id: str) -> Optional[Registration]:
        """Case-insensitive identity lookup."""
        folded = package_id.casefold()
        for registration in self.query_all(Registration):
            if registration.id.casefold() == folded:
                return registration
        return None

    def find_owner_request(self, registration: Registration, new_owner_key: str) -> Optional[OwnerRequest]:
        for request in self.query_all(OwnerRequest):
            if request.registration_key == registration.key and request.new_owner_key == new_owner_key:
                return request
        return None


def _entity_type(entity: object) -> type:
    entity_type = type(entity)
    if entity_type not in ENTITY_TYPES:
        raise TypeError(f"{entity_type.__name__} is not a stored entity type")
    return entity_type


def _contains(items: list, entity: object) -> bool:
    return any(e is entity for e in items)
