"""Utilities for locating the on-disk blobstore used by the JSON stores."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Union

_PACKAGE_DIR = Path(__file__).resolve().parent

#: Name of the directory under :mod:`cyberpulse.blobstore` that contains the data.
DEFAULT_BLOB_SUBDIR = "data"

#: Default location where articles and subscribers are stored.
DEFAULT_BLOB_ROOT = _PACKAGE_DIR / DEFAULT_BLOB_SUBDIR

ARTICLES_SUBDIR = "articles"
SUBSCRIBERS_SUBDIR = "subscribers"


_Pathish = Union[str, Path]


def resolve_blob_root(blob_root: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the blob root.

    ``blob_root`` may be either a string or :class:`Path`.  When ``None`` is
    provided, :data:`DEFAULT_BLOB_ROOT` is returned.  The path is not created on
    disk; callers can use :func:`ensure_blob_root` if they need to create it.
    """

    if blob_root is None:
        return DEFAULT_BLOB_ROOT
    if isinstance(blob_root, Path):
        return blob_root
    return Path(blob_root)


def ensure_blob_root(blob_root: _Pathish | None = None, *subdirs: str) -> Path:
    """Ensure the blob root (or a directory below it) exists and return it."""

    root = resolve_blob_root(blob_root).joinpath(*subdirs)
    root.mkdir(parents=True, exist_ok=True)
    return root


def blob_name(key: str) -> str:
    """Return the stable file name used for the document identified by ``key``."""

    return f"{hashlib.sha1(key.encode('utf-8')).hexdigest()}.json"


__all__ = [
    "ARTICLES_SUBDIR",
    "DEFAULT_BLOB_ROOT",
    "DEFAULT_BLOB_SUBDIR",
    "SUBSCRIBERS_SUBDIR",
    "blob_name",
    "ensure_blob_root",
    "resolve_blob_root",
]
