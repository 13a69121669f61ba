from __future__ import annotations

import asyncio
import errno
import logging
import re
import time
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from helpdesk.errors import NotFoundError, TransientInfraError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")


class FileStorageError(TransientInfraError):
    """Raised when an attachment cannot be written to the file store."""


class FileStore(Protocol):
    async def save(self, ticket_id: int, filename: str, data: bytes) -> str:
        ...

    async def delete(self, locator: str) -> None:
        ...

    def resolve(self, locator: str) -> Path:
        ...


def safe_filename(filename: str | None) -> str:
    name = Path(filename or "").name or "file"
    return _UNSAFE_CHARS.sub("_", name)


class LocalFileStore:
    """Store attachments below ``root`` as ``tickets/<ticket id>/<unique>-<name>``.

    Locators are relative to ``root``; deletion is best-effort.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    async def save(self, ticket_id: int, filename: str, data: bytes) -> str:
        relative = Path("tickets") / str(ticket_id) / f"{int(time.time() * 1000)}-{uuid4().hex[:8]}-{safe_filename(filename)}"
        try:
            await asyncio.to_thread(self._write, self.root / relative, data)
        except OSError as exc:
            logger.exception("Could not store attachment file %s", relative)
            await asyncio.to_thread(self._remove, self.root / relative)
            raise FileStorageError("The attachment storage is temporarily unavailable") from exc
        return relative.as_posix()

    async def delete(self, locator: str) -> None:
        if not locator:
            return
        try:
            path = self.resolve(locator)
        except NotFoundError:
            logger.warning("Refusing to delete file outside upload root: %s", locator)
            return
        await asyncio.to_thread(self._remove, path)

    def resolve(self, locator: str) -> Path:
        path = (self.root / locator).resolve()
        if not path.is_relative_to(self.root):
            raise NotFoundError("Attachment file not found")
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Could not delete attachment file %s", path)
            return
        parent = path.parent
        if parent == self.root:
            return
        try:
            parent.rmdir()
        except OSError as exc:
            if exc.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
                logger.warning("Could not remove directory %s: %s", parent, exc)
