"""Storage backend interface shared by every file store."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, FrozenSet

CHUNK_SIZE = 8192  # 8KB chunks


class Capability(str, Enum):
    EXISTS = "exists"
    READ = "read"
    WRITE = "write"


class StorageError(Exception):
    """Base class for backend failures."""


class BlobNotFoundError(StorageError):
    def __init__(self, filename: str):
        super().__init__(f"\"{filename}\" is not found")
        self.filename = filename


class StorageIOError(StorageError):
    """The underlying medium failed."""


class OperationNotSupportedError(StorageError):
    def __init__(self, backend: str, operation: Capability):
        super().__init__(f"{operation.value} is not implemented for the {backend} backend")
        self.backend = backend
        self.operation = operation


class WriteError(StorageError):
    """A write failed; ``bytes_written`` is how much was transferred before it did."""

    def __init__(self, message: str, bytes_written: int = 0):
        super().__init__(message)
        self.bytes_written = bytes_written


class BlobReader:
    """Async readable stream over a stored blob. The caller must close it."""

    def __init__(self, handle, chunk_size: int = CHUNK_SIZE):
        self._handle = handle
        self._chunk_size = chunk_size
        self.closed = False

    async def read(self, size: int = -1) -> bytes:
        return await self._handle.read(size)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while chunk := await self._handle.read(self._chunk_size):
            yield chunk

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._handle.close()

    async def __aenter__(self) -> 'BlobReader':
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


class StorageBackend(ABC):
    """Exists / read / write over named blobs.

    Backends that only implement part of the contract declare it through
    ``capabilities`` and raise :class:`OperationNotSupportedError` for the rest.
    """

    name = "abstract"
    capabilities: FrozenSet[Capability] = frozenset()

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _unsupported(self, operation: Capability) -> OperationNotSupportedError:
        return OperationNotSupportedError(self.name, operation)

    async def initialize(self) -> None:
        """Prepare the backend before the server accepts requests."""

    async def close(self) -> None:
        """Release resources held by the backend."""

    @abstractmethod
    async def exists(self, filename: str) -> bool:
        """
        Check whether a blob can currently be retrieved.

        Raises:
            OperationNotSupportedError: If the backend cannot answer
            StorageIOError: On underlying failure
        """

    @abstractmethod
    async def read(self, filename: str) -> BlobReader:
        """
        Open a blob for reading from its start.

        Raises:
            BlobNotFoundError: If no blob is stored under the name
            StorageIOError: On underlying failure
        """

    @abstractmethod
    async def write(self, filename: str, stream: AsyncIterator[bytes]) -> int:
        """
        Drain the stream into storage, replacing any previous blob.

        Returns:
            Number of bytes stored

        Raises:
            WriteError: If the transfer fails; carries the bytes written so far
        """
