"""Centralised filesystem paths for persisted profiles, uploads and sessions."""

from __future__ import annotations

import os
from pathlib import Path


PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

# Unified data root for everything the local service backends write.
DATA_ROOT = Path(os.getenv("TMR_DATA_ROOT", PROJECT_ROOT / "app_data")).resolve()

# Record collections of the local profile store (one JSON file per collection).
PROFILE_STORE_DIR = DATA_ROOT / "profile_store"

# Uploaded documents served by the local object store.
OBJECT_STORE_DIR = DATA_ROOT / "objects"

# Credentials and the persisted session of the local auth provider.
AUTH_DIR = DATA_ROOT / "auth"


def ensure_data_directories(root: Path | None = None) -> Path:
    """Create the standard directory layout under ``root`` (default ``DATA_ROOT``)."""

    base = Path(root) if root is not None else DATA_ROOT
    for directory in (
        base,
        base / PROFILE_STORE_DIR.name,
        base / OBJECT_STORE_DIR.name,
        base / AUTH_DIR.name,
    ):
        directory.mkdir(parents=True, exist_ok=True)
    return base


__all__ = [
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    "DATA_ROOT",
    "PROFILE_STORE_DIR",
    "OBJECT_STORE_DIR",
    "AUTH_DIR",
    "ensure_data_directories",
]
