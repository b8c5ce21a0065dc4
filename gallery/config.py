"""Gallery configuration.

Settings come from an optional YAML file and are then overridden by
environment variables (``GALLERY_STORE_DIR``, ``GALLERY_INDEX_URL``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_MAX_PACKAGE_ID_LENGTH = 128


def _default_store_dir() -> str:
    return str(Path.home() / ".gallery" / "store")


@dataclass
class GalleryConfig:
    """Runtime settings shared by the store, service and CLI."""

    store_dir: str = ""
    max_package_id_length: int = DEFAULT_MAX_PACKAGE_ID_LENGTH
    index_url: str = ""
    index_timeout: float = 5.0
    request_delete_attempts: int = 2

    def __post_init__(self) -> None:
        if not self.store_dir:
            self.store_dir = _default_store_dir()
        if self.max_package_id_length <= 0:
            raise ValueError("max_package_id_length must be positive")
        if self.request_delete_attempts < 1:
            raise ValueError("request_delete_attempts must be at least 1")


def load_config(path: Optional[str | Path] = None) -> GalleryConfig:
    """Build a config from *path* (YAML) and the environment."""
    data: dict = {}
    if path is not None:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data = loaded.get("gallery", loaded)

    known = {f.name for f in fields(GalleryConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    store_dir = os.environ.get("GALLERY_STORE_DIR")
    if store_dir:
        data["store_dir"] = store_dir
    index_url = os.environ.get("GALLERY_INDEX_URL")
    if index_url:
        data["index_url"] = index_url

    return GalleryConfig(**data)
