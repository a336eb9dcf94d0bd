import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from audiolink.core.config import Settings
from audiolink.core.errors import (
    AdmissionError, BlobNotFoundError, ConflictError, NotFoundError,
    SizeLimitError, StorageError, ValidationError,
)
from audiolink.modules.audio.formatting import format_file_size
from audiolink.modules.audio.models import AudioFile
from audiolink.modules.audio.ranges import ByteRange, parse_range_header
from audiolink.modules.audio.repository import AudioFileRepository
from audiolink.modules.audio.schemas import AudioFileCreate, AudioFileOut, AudioUploadOut, ReconcileReport
from audiolink.platform.ports.event_bus import EventBusPort
from audiolink.platform.ports.object_storage import ObjectStoragePort

log = logging.getLogger("audio.service")

EVENTS_TOPIC = "audiolink.events"
AUDIO_MIME_PREFIX = "audio/"
_EXT_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")

def _new_uuid() -> str:
    return str(uuid.uuid4())

def storage_extension(original_filename: str | None) -> str:
    """Extension used for the blob key, "" when there is no usable one."""
    if not original_filename:
        return ""
    base = original_filename.replace("\\", "/").rsplit("/", 1)[-1]
    if base.startswith(".") and base.count(".") == 1:
        # dotfile such as ".mp3" has no extension, like a name with no dot at all
        return ""
    ext = "." + base.rsplit(".", 1)[1] if "." in base else ""
    return ext.lower() if _EXT_RE.match(ext) else ""

def is_audio_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.strip().lower().startswith(AUDIO_MIME_PREFIX)

@dataclass
class BlobSlice:
    record: AudioFileOut
    total: int
    chunks: Iterator[bytes]
    byte_range: ByteRange | None = None

    @property
    def length(self) -> int:
        return self.byte_range.length if self.byte_range else self.total

class AudioFileService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        storage: ObjectStoragePort,
        bus: EventBusPort,
        settings: Settings,
        base_url: str,
    ):
        self.session = session
        self.repo = AudioFileRepository(session)
        self.storage = storage
        self.bus = bus
        self.settings = settings
        self.base_url = base_url.rstrip("/")

    # ---- URLs / shaping ----

    def download_url(self, file_uuid: str) -> str:
        return f"{self.base_url}{self.settings.API_PREFIX}/audio/download/{file_uuid}"

    def _to_out(self, obj: AudioFile) -> AudioFileOut:
        created_at = obj.created_at
        if created_at.tzinfo is None:
            # sqlite hands back naive datetimes; they were written as UTC
            created_at = created_at.replace(tzinfo=timezone.utc)
        return AudioFileOut(
            id=obj.id,
            filename=obj.filename,
            original_filename=obj.original_filename,
            file_size=obj.file_size,
            mime_type=obj.mime_type,
            uuid=obj.uuid,
            created_at=created_at,
            download_url=self.download_url(obj.uuid),
        )

    # ---- Upload ----

    async def upload(self, original_filename: str, mime_type: str | None, size_bytes: int | None, data: bytes) -> AudioUploadOut:
        if not is_audio_mime(mime_type):
            log.warning("upload rejected: non-audio mime type %r for %r", mime_type, original_filename)
            raise AdmissionError()

        limit = self.settings.MAX_UPLOAD_BYTES
        actual = len(data)
        if (size_bytes is not None and size_bytes > limit) or actual > limit:
            log.warning("upload rejected: %d bytes exceeds limit %d for %r", max(size_bytes or 0, actual), limit, original_filename)
            raise SizeLimitError(f"File too large (>{format_file_size(limit)})")
        if size_bytes is not None and size_bytes != actual:
            raise ValidationError(f"Declared size {size_bytes} does not match payload size {actual}")

        file_uuid = _new_uuid()
        try:
            payload = AudioFileCreate(
                filename=f"{file_uuid}{storage_extension(original_filename)}",
                original_filename=original_filename,
                file_size=actual,
                mime_type=mime_type,
                uuid=file_uuid,
            )
        except PydanticValidationError as e:
            err = e.errors()[0]
            field = ".".join(str(p) for p in err.get("loc", ()))
            raise ValidationError(f"Invalid {field}: {err.get('msg')}") from e

        if await self.repo.get_by_uuid(file_uuid) is not None:
            raise ConflictError(f"Audio file with uuid {file_uuid} already exists")

        # blob first: a failed write leaves no metadata behind
        try:
            await run_in_threadpool(self.storage.put_bytes, payload.filename, data, content_type=payload.mime_type)
        except StorageError:
            log.exception("upload failed writing blob uuid=%s key=%s", file_uuid, payload.filename)
            raise

        try:
            obj = await self.repo.create(**payload.model_dump())
            await self.session.commit()
        except (ConflictError, SQLAlchemyError) as e:
            await self.session.rollback()
            log.error("upload failed inserting metadata uuid=%s, removing blob %s: %s", file_uuid, payload.filename, e)
            await self._discard_blob(payload.filename)
            if isinstance(e, ConflictError):
                raise
            raise StorageError(f"Failed to save metadata for {payload.filename}: {e}") from e

        log.info("uploaded id=%s uuid=%s key=%s bytes=%d", obj.id, obj.uuid, obj.filename, obj.file_size)
        await self._publish("AUDIO_UPLOADED", obj)
        out = self._to_out(obj)
        return AudioUploadOut(**out.model_dump(), formatted_size=format_file_size(obj.file_size))

    async def _discard_blob(self, key: str):
        try:
            await run_in_threadpool(self.storage.delete, key)
        except StorageError:
            log.exception("compensating delete failed; orphan blob left at key=%s", key)

    # ---- Reads ----

    async def list_files(self, limit: int | None = None, offset: int = 0) -> list[AudioFileOut]:
        rows = await self.repo.list_all(limit=limit, offset=offset)
        return [self._to_out(r) for r in rows]

    async def get_by_uuid(self, file_uuid: str) -> AudioFileOut:
        obj = await self.repo.get_by_uuid(file_uuid)
        if obj is None:
            raise NotFoundError()
        return self._to_out(obj)

    async def _blob_size(self, record: AudioFileOut) -> int:
        try:
            total = await run_in_threadpool(self.storage.size, record.filename)
        except BlobNotFoundError:
            log.error("metadata without blob: id=%s uuid=%s key=%s", record.id, record.uuid, record.filename)
            raise NotFoundError()
        if total != record.file_size:
            log.warning("size mismatch uuid=%s: metadata=%d blob=%d", record.uuid, record.file_size, total)
        return total

    async def open_download(self, file_uuid: str) -> BlobSlice:
        record = await self.get_by_uuid(file_uuid)
        total = await self._blob_size(record)
        chunks = await run_in_threadpool(
            self.storage.iter_bytes, record.filename, chunk_size=self.settings.STREAM_CHUNK_SIZE
        )
        return BlobSlice(record=record, total=total, chunks=chunks)

    async def open_stream(self, file_uuid: str, range_header: str | None = None) -> BlobSlice:
        record = await self.get_by_uuid(file_uuid)
        total = await self._blob_size(record)
        byte_range = parse_range_header(range_header, total)
        start, end = (0, None) if byte_range is None else (byte_range.start, byte_range.end)
        chunks = await run_in_threadpool(
            self.storage.iter_bytes, record.filename, start, end, chunk_size=self.settings.STREAM_CHUNK_SIZE
        )
        return BlobSlice(record=record, total=total, chunks=chunks, byte_range=byte_range)

    # ---- Delete ----

    async def delete(self, file_id: int) -> bool:
        obj = await self.repo.get_by_id(file_id)
        if obj is None:
            return False
        key, file_uuid = obj.filename, obj.uuid

        # blob first; if that fails the record stays and the delete is reported as failed
        try:
            await run_in_threadpool(self.storage.delete, key)
        except StorageError:
            log.exception("delete failed removing blob id=%s key=%s", file_id, key)
            raise

        try:
            removed = await self.repo.delete_by_id(file_id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            log.error("blob %s removed but metadata id=%s remains; needs reconciliation: %s", key, file_id, e)
            raise StorageError(f"Failed to delete metadata for id {file_id}: {e}") from e

        if removed:
            log.info("deleted id=%s uuid=%s key=%s", file_id, file_uuid, key)
            await self._publish("AUDIO_DELETED", obj)
        else:
            log.info("delete id=%s: already removed by another request", file_id)
        return removed

    # ---- Reconciliation ----

    async def reconcile(self, remove_orphan_blobs: bool = False, min_age_seconds: int | None = None) -> ReconcileReport:
        """Compare blob keys with metadata filenames.

        Uploads write the blob before committing the record, so an orphan
        younger than ``min_age_seconds`` (default ``ORPHAN_GRACE_SECONDS``) is
        reported in ``recent_blobs`` and never removed. Older orphans are
        removed only when ``remove_orphan_blobs`` is set, and only if no record
        has claimed the key by the time of the delete.
        """
        if min_age_seconds is None:
            min_age_seconds = self.settings.ORPHAN_GRACE_SECONDS
        filenames = await self.repo.list_filenames()
        keys = await run_in_threadpool(lambda: set(self.storage.list_keys()))
        report = ReconcileReport(
            orphan_blobs=sorted(keys - filenames),
            missing_blobs=sorted(filenames - keys),
        )
        for key in report.missing_blobs:
            log.warning("reconcile: metadata references missing blob %s", key)

        cutoff = datetime.now(timezone.utc) - timedelta(seconds=min_age_seconds)
        for key in report.orphan_blobs:
            try:
                modified = await run_in_threadpool(self.storage.modified_at, key)
            except BlobNotFoundError:
                log.info("reconcile: orphan blob %s disappeared during the sweep", key)
                continue
            if modified > cutoff:
                log.info("reconcile: blob %s has no record yet but is within the grace window, skipping", key)
                report.recent_blobs.append(key)
                continue
            log.warning("reconcile: orphan blob %s (last written %s)", key, modified.isoformat())
            if not remove_orphan_blobs:
                continue
            if await self.repo.filename_exists(key):
                log.info("reconcile: blob %s was claimed by a record during the sweep, keeping it", key)
                continue
            await run_in_threadpool(self.storage.delete, key)
            report.removed_blobs.append(key)
        return report

    # ---- Events ----

    async def _publish(self, event_type: str, obj: AudioFile):
        value = {
            "event_type": event_type,
            "id": obj.id,
            "uuid": obj.uuid,
            "filename": obj.filename,
            "fileSize": obj.file_size,
            "mimeType": obj.mime_type,
        }
        try:
            await self.bus.publish(topic=EVENTS_TOPIC, key=obj.uuid, value=value)
        except Exception:
            # the operation is already committed; a lost event must not undo it
            log.exception("event publish failed event=%s uuid=%s", event_type, obj.uuid)
