import os
import uuid
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from upload_server.logger_config import setup_logger, structured_log
from upload_server.storage.base import (
    BlobNotFoundError,
    BlobReader,
    Capability,
    StorageBackend,
    StorageIOError,
    WriteError,
)

logger = setup_logger()


class DiskStore(StorageBackend):
    """Stores blobs as plain files under a root directory.

    Filenames are joined to the root verbatim; callers must validate them
    first, nothing here checks that the result stays inside the root.
    """

    name = "disk"
    capabilities = frozenset({Capability.EXISTS, Capability.READ, Capability.WRITE})

    def __init__(self, root_directory):
        if not root_directory:
            raise ValueError("no root directory provided")
        self.root_directory = Path(root_directory)

    def get_path(self, filename: str) -> Path:
        return Path(os.path.normpath(os.path.join(self.root_directory, filename)))

    async def initialize(self):
        await aiofiles.os.makedirs(self.root_directory, exist_ok=True)
        logger.info(structured_log("Document root ready", root=self.root_directory))

    async def exists(self, filename: str) -> bool:
        path = self.get_path(filename)
        try:
            f = await aiofiles.open(path, 'rb')
        except (FileNotFoundError, IsADirectoryError):
            return False
        except OSError as e:
            raise StorageIOError(f"failed to open {filename}: {e}") from e
        await f.close()
        return True

    async def read(self, filename: str) -> BlobReader:
        path = self.get_path(filename)
        try:
            f = await aiofiles.open(path, 'rb')
        except (FileNotFoundError, IsADirectoryError) as e:
            raise BlobNotFoundError(filename) from e
        except OSError as e:
            raise StorageIOError(f"failed to open {filename}: {e}") from e
        return BlobReader(f)

    async def write(self, filename: str, stream: AsyncIterator[bytes]) -> int:
        """Stream into a temporary file, then move it over the target.

        A failed write never touches the existing blob.
        """
        target = self.get_path(filename)
        temp_path = self.root_directory / f".{filename}.{uuid.uuid4().hex}.tmp"
        written = 0
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                async for chunk in stream:
                    if chunk:
                        await f.write(chunk)
                        written += len(chunk)
            await aiofiles.os.replace(temp_path, target)
        except OSError as e:
            raise WriteError(f"failed to write {filename}: {e}", bytes_written=written) from e
        finally:
            # Only still present when something above failed
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.unlink(temp_path)

        logger.debug(structured_log("Blob written", path=target, size=written))
        return written
