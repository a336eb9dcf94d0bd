import logging
import os
from datetime import datetime, timezone
from typing import Iterator
from audiolink.core.errors import BlobNotFoundError, StorageError
from audiolink.platform.ports.object_storage import ObjectStoragePort, DEFAULT_CHUNK_SIZE

log = logging.getLogger("storage.local")

PARTIAL_SUFFIX = ".part"

class LocalFilesystemStorage(ObjectStoragePort):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        # keys are flat names; anything that would escape the root is a caller bug
        if not key or key in (".", "..") or "/" in key or "\\" in key or key.endswith(PARTIAL_SUFFIX):
            raise ValueError(f"invalid blob key: {key!r}")
        return os.path.join(self.root, key)

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        tmp = path + PARTIAL_SUFFIX
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as e:
            log.error("put failed key=%s: %s", key, e)
            if os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError(f"Failed to write blob {path}: {e}") from e
        log.debug("put key=%s bytes=%d content_type=%s", key, len(data), content_type)

    def get_bytes(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read blob {path}: {e}") from e

    def iter_bytes(self, key: str, start: int = 0, end: int | None = None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        path = self._path(key)
        try:
            f = open(path, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to open blob {path}: {e}") from e
        return self._read_range(f, start, end, chunk_size)

    @staticmethod
    def _read_range(f, start: int, end: int | None, chunk_size: int) -> Iterator[bytes]:
        with f:
            f.seek(start)
            remaining = None if end is None else end - start + 1
            while remaining is None or remaining > 0:
                n = chunk_size if remaining is None else min(chunk_size, remaining)
                chunk = f.read(n)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk

    def size(self, key: str) -> int:
        path = self._path(key)
        try:
            return os.path.getsize(path)
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to stat blob {path}: {e}") from e

    def modified_at(self, key: str) -> datetime:
        path = self._path(key)
        try:
            return datetime.fromtimestamp(os.path.getmtime(path), tz=timezone.utc)
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to stat blob {path}: {e}") from e

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            log.debug("delete key=%s: already absent", key)
        except OSError as e:
            raise StorageError(f"Failed to delete blob {path}: {e}") from e

    def list_keys(self) -> Iterator[str]:
        try:
            names = sorted(os.listdir(self.root))
        except FileNotFoundError:
            return iter(())
        return (
            n for n in names
            if not n.endswith(PARTIAL_SUFFIX) and os.path.isfile(os.path.join(self.root, n))
        )
