#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from pathlib import Path
import re
from typing import AsyncIterator

import aiofiles
import aiofiles.os

CHUNK_SIZE = 4 * (2**20)

_BLOB_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class BlobNotFound(Exception):
    """The requested blob is not in the store."""


class LocalBlobStore:
    """Archives stored as files in a directory, keyed by blob name."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)

    def path(self, name: str) -> Path:
        # Blob names are opaque, but never path fragments.
        if not _BLOB_NAME_RE.match(name):
            raise BlobNotFound(name)
        return self.base_dir / name

    async def exists(self, name: str) -> bool:
        try:
            return await aiofiles.os.path.isfile(self.path(name))
        except BlobNotFound:
            return False

    async def size(self, name: str) -> int:
        try:
            return (await aiofiles.os.stat(self.path(name))).st_size
        except FileNotFoundError:
            raise BlobNotFound(name) from None

    async def put(self, name: str, content: bytes) -> None:
        await aiofiles.os.makedirs(self.base_dir, exist_ok=True)
        async with aiofiles.open(self.path(name), "wb") as f:
            await f.write(content)

    async def open(self, name: str) -> AsyncIterator[bytes]:
        """Stream the content of a blob.

        Raises BlobNotFound before yielding anything when it is missing.
        """
        path = self.path(name)
        if not await aiofiles.os.path.isfile(path):
            raise BlobNotFound(name)
        return self._read_chunks(path)

    async def _read_chunks(self, path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(CHUNK_SIZE):
                yield chunk

