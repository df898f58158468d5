"""Local disk implementation of the FileSystem protocol."""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from pathlib import Path
from typing import IO


def _raise(exc: OSError) -> None:
    raise exc


class OSFileSystem:
    """FileSystem backed by the local disk.

    Directory listings are sorted so that builds visit files in a stable order.
    """

    def walk(self, root: Path) -> Iterator[tuple[Path, bool]]:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames.sort()
            current = Path(dirpath)
            for name in dirnames:
                yield current / name, True
            for name in sorted(filenames):
                yield current / name, False

    def exists(self, path: Path) -> bool:
        return path.exists()

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_bytes(self, path: Path, data: bytes) -> None:
        path.write_bytes(data)

    def create(self, path: Path) -> IO[str]:
        return open(path, "w", encoding="utf-8", newline="")

    def makedirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def remove_tree(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
