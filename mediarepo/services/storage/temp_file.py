# mediarepo/services/storage/temp_file.py
from __future__ import annotations

import os
import tempfile
import weakref
from pathlib import Path
from typing import Optional

from mediarepo.common.logging import get_logger

logger = get_logger(__name__)


def _unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("could not remove scratch file %s: %s", path, e)


class TempFile:
    """
    A scratch file that is removed on every exit path.

    Use as a context manager. On an exception (including cancellation) the file
    is removed when the block exits. Without an exception it is removed then too,
    unless bind() tied it to an owner object, in which case it lives exactly as
    long as that owner does.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._finalizer: Optional[weakref.finalize] = None

    @classmethod
    def factory(cls, prefix: str, extension: str = "", tmp_dir: Optional[Path | str] = None) -> "TempFile":
        """
        Create an empty file now, so that disk-full or permission problems show
        up before any expensive work. Raises OSError.
        """
        suffix = f".{extension}" if extension else ""
        if tmp_dir is not None:
            Path(tmp_dir).mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=str(tmp_dir) if tmp_dir else None)
        os.close(fd)
        return cls(Path(name))

    @property
    def bound(self) -> bool:
        return self._finalizer is not None and self._finalizer.alive

    def bind(self, owner: object) -> None:
        """Keep the file until `owner` is garbage collected (or the interpreter exits)."""
        if self._finalizer is not None:
            self._finalizer.detach()
        self._finalizer = weakref.finalize(owner, _unlink, self.path)

    def purge(self) -> None:
        if self._finalizer is not None and self._finalizer.alive:
            self._finalizer()
        else:
            _unlink(self.path)

    def __enter__(self) -> "TempFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None or not self.bound:
            self.purge()
        return False
