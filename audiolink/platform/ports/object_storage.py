from datetime import datetime
from typing import Iterator, Protocol, runtime_checkable

DEFAULT_CHUNK_SIZE = 64 * 1024

@runtime_checkable
class ObjectStoragePort(Protocol):
    """Blob store keyed by flat object keys.

    Missing keys raise ``BlobNotFoundError`` on reads; any other backend
    failure raises ``StorageError``. ``delete`` of a missing key succeeds.
    """

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None: ...

    def get_bytes(self, key: str) -> bytes: ...

    def iter_bytes(self, key: str, start: int = 0, end: int | None = None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the inclusive byte range [start, end] (end=None means to the last byte)."""
        ...

    def size(self, key: str) -> int: ...

    def modified_at(self, key: str) -> datetime:
        """Last write time of the blob, timezone-aware UTC."""
        ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...

    def list_keys(self) -> Iterator[str]: ...
