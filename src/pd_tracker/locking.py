"""File locking and atomic writes for backup files and cached assets."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

import portalocker

LOCK_TIMEOUT = 10.0


def lock_path_for(path: Path) -> Path:
    """Sidecar lock file used for ``path``."""
    return path.with_name(path.name + ".lock")


@contextmanager
def file_lock(path: Path, timeout: float = LOCK_TIMEOUT) -> Generator[None, None, None]:
    """Hold an exclusive lock on a sidecar ``.lock`` file next to ``path``.

    Raises:
        portalocker.LockException: If the lock cannot be acquired in time
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


def atomic_write(path: Path, data: Union[str, bytes], encoding: str = "utf-8") -> None:
    """Write ``data`` to a temp file, then rename it over ``path``.

    Readers see either the old file or the complete new one.
    """
    tmp_path = path.with_name(path.name + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        if isinstance(data, bytes):
            tmp_path.write_bytes(data)
        else:
            tmp_path.write_text(data, encoding=encoding)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def locked_atomic_write(
    path: Path,
    data: Union[str, bytes],
    encoding: str = "utf-8",
    timeout: float = LOCK_TIMEOUT,
) -> None:
    """Atomic write while holding the file's lock."""
    with file_lock(path, timeout=timeout):
        atomic_write(path, data, encoding=encoding)
