"""
Local staging directory between the download and upload phases.

A staged file lives at ``root / to_local_path(key)``; walking the tree and
applying ``to_object_key`` to each relative path gives the key back.
"""
from __future__ import annotations
import logging
import os
import shutil
from pathlib import Path, PurePath
from typing import Callable, Iterator, Optional, Tuple

from .errors import StagingSetupError, StagingTeardownError, log_and_reraise
from .utils import ensure_dir

log = logging.getLogger(__name__)


def _raise(e: OSError) -> None:
    raise e

_FOREIGN_SEPS = {s for s in (os.sep, os.altsep) if s and s != "/"}


def to_local_path(key: str) -> PurePath:
    """Map an object key to a path relative to the staging root."""
    parts = key.split("/")
    if any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"key cannot be mapped to a local path: {key!r}")
    if any(sep in key for sep in _FOREIGN_SEPS):
        raise ValueError(f"key contains the local path separator: {key!r}")
    return PurePath(*parts)


def to_object_key(relative_path: PurePath | str) -> str:
    """Inverse of to_local_path: join path parts with '/', no leading './'."""
    parts = [p for p in PurePath(relative_path).parts if p != "."]
    return "/".join(parts)


class StagingArea:
    def __init__(self, root: Path | str, keep_on_failure: bool = False):
        self.root = Path(root)
        self.keep_on_failure = keep_on_failure

    def __repr__(self) -> str:
        return f"StagingArea({str(self.root)!r})"

    @log_and_reraise(StagingSetupError)
    def create(self) -> Path:
        ensure_dir(self.root)
        if any(self.root.iterdir()):
            log.warning("Staging directory %s is not empty; existing files will be uploaded too", self.root)
        return self.root

    @log_and_reraise(StagingTeardownError)
    def remove(self) -> None:
        if not self.root.exists():
            return
        shutil.rmtree(self.root)
        log.info("Removed staging directory %s", self.root)

    def path_for(self, key: str) -> Path:
        return self.root / to_local_path(key)

    def iter_files(self, onerror: Optional[Callable[[OSError], None]] = None) -> Iterator[Tuple[Path, str]]:
        """
        Yield (path, key) for every regular file under the root.
        A directory that cannot be listed raises, unless onerror handles it.
        """
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=onerror or _raise):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if not path.is_file():
                    continue
                yield path, to_object_key(path.relative_to(self.root))

    def __enter__(self) -> "StagingArea":
        self.create()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.remove()
            return False
        if self.keep_on_failure:
            log.warning("Keeping staging directory %s for manual recovery", self.root)
            return False
        try:
            self.remove()
        except StagingTeardownError:
            log.warning("Staging directory %s left behind", self.root)
        return False
