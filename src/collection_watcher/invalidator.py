"""Cache invalidation for collection files ahead of a reload."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .protocols import LoaderProtocol

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def normalize_cache_key(path: PathLike) -> str:
    """
    Normalize a path into the key used by loader caches.

    Watch events may report either separator style, so both ``/`` and
    ``\\`` are mapped to the host separator before the path is made
    absolute.

    Args:
        path: File path as reported by a watch subscription or descriptor

    Returns:
        Absolute, normalized path string
    """
    key = str(path).replace("\\", os.sep).replace("/", os.sep)
    return os.path.abspath(key)


def invalidate(loader: LoaderProtocol, path: Optional[PathLike]) -> Optional[str]:
    """
    Purge the loader's cached representation of a file.

    Idempotent: invalidating an uncached path is a no-op.

    Returns:
        The normalized key, or None when no path was given
    """
    if not path:
        return None

    key = normalize_cache_key(path)
    logger.debug(f"Invalidating cache for {key}")
    loader.invalidate(key)
    return key
