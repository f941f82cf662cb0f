"""File system utilities: atomic writes and private directories."""

from __future__ import annotations

import contextlib
import logging
import os
import platform
import stat
import tempfile
from pathlib import Path

log = logging.getLogger(__name__)

FILE_MODE = 0o600
DIR_MODE = 0o700

_IS_WINDOWS = platform.system() == "Windows"


def ensure_dir(path: Path, private: bool = True) -> Path:
    """Create a directory if missing; private dirs are owner-only."""
    existed = path.exists()
    path.mkdir(parents=True, exist_ok=True)
    if private and not existed and not _IS_WINDOWS:
        path.chmod(DIR_MODE)
    return path


def atomic_write(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    mode: int | None = FILE_MODE,
) -> None:
    """Write content to a file atomically via temp file + rename.

    Args:
        path: Destination file.
        content: Text to write.
        encoding: Text encoding.
        mode: Permission bits for the result. None keeps the mode of an
            existing file (used when rewriting documents the user owns).
    """
    existing_mode = None
    if mode is None and path.exists():
        existing_mode = stat.S_IMODE(path.stat().st_mode)

    ensure_dir(path.parent, private=mode is not None)

    # Temp file in the same directory so the rename stays on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise

    final_mode = mode if mode is not None else existing_mode
    if final_mode is not None and not _IS_WINDOWS:
        path.chmod(final_mode)
    elif mode is None and existing_mode is None and not _IS_WINDOWS:
        # New document: honour the process umask like a plain open() would
        umask = os.umask(0)
        os.umask(umask)
        path.chmod(0o666 & ~umask)
