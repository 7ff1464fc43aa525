from __future__ import annotations

import secrets
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Iterator

from tubely.core.logging import get_logger

# 32 random bytes, rendered as 43 base64url characters.
TOKEN_BYTES = 32


def random_token() -> str:
    """Return a URL-safe random token with 256 bits of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class TempFileManager:
    """Allocates and releases per-upload scratch files under a single root.

    Paths are unique because their names are random tokens; concurrent
    uploads never coordinate with each other.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.logger = get_logger(component="temp_files")

    def allocate(self, extension: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root / f"{random_token()}.{extension}"

    def write(self, path: Path, data: bytes) -> None:
        with path.open("wb") as handle:
            handle.write(data)

    def delete(self, path: Path) -> None:
        """Remove ``path``; raises ``FileNotFoundError`` if it is already gone."""
        path.unlink()
        self.logger.debug("temp_file_deleted", path=str(path))

    def release(self, path: Path) -> None:
        with suppress(FileNotFoundError):
            self.delete(path)

    @contextmanager
    def staged(self, extension: str, data: bytes) -> Iterator[Path]:
        """Write ``data`` to a fresh path and delete it when the scope exits."""
        path = self.allocate(extension)
        try:
            self.write(path, data)
            self.logger.debug("temp_file_written", path=str(path), size_bytes=len(data))
            yield path
        finally:
            self.release(path)

    @contextmanager
    def owned(self, path: Path) -> Iterator[Path]:
        """Take ownership of a file produced elsewhere, e.g. by ffmpeg."""
        try:
            yield path
        finally:
            self.release(path)


__all__ = ["TempFileManager", "random_token", "TOKEN_BYTES"]
