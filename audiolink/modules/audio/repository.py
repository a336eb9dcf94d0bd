import logging
from typing import Sequence
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from audiolink.core.errors import ConflictError
from audiolink.modules.audio.models import AudioFile

log = logging.getLogger("audio.repository")

class AudioFileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, *, filename: str, original_filename: str, file_size: int, mime_type: str, uuid: str) -> AudioFile:
        obj = AudioFile(
            filename=filename,
            original_filename=original_filename,
            file_size=file_size,
            mime_type=mime_type,
            uuid=uuid,
        )
        self.session.add(obj)
        try:
            await self.session.flush()
        except IntegrityError as e:
            log.warning("insert rejected uuid=%s filename=%s: %s", uuid, filename, e.orig)
            raise ConflictError(f"Audio file with uuid {uuid} already exists") from e
        return obj

    async def get_by_id(self, file_id: int) -> AudioFile | None:
        res = await self.session.execute(select(AudioFile).where(AudioFile.id == file_id))
        return res.scalar_one_or_none()

    async def get_by_uuid(self, uuid: str) -> AudioFile | None:
        # exact match only: a uuid must never resolve through a partial or substring match
        res = await self.session.execute(select(AudioFile).where(AudioFile.uuid == uuid))
        return res.scalar_one_or_none()

    async def list_all(self, limit: int | None = None, offset: int = 0) -> Sequence[AudioFile]:
        q = select(AudioFile).order_by(AudioFile.created_at.desc(), AudioFile.id.desc())
        if offset:
            q = q.offset(offset)
        if limit is not None:
            q = q.limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def delete_by_id(self, file_id: int) -> bool:
        res = await self.session.execute(delete(AudioFile).where(AudioFile.id == file_id))
        return (res.rowcount or 0) > 0

    async def list_filenames(self) -> set[str]:
        res = await self.session.execute(select(AudioFile.filename))
        return set(res.scalars().all())

    async def filename_exists(self, filename: str) -> bool:
        res = await self.session.execute(select(AudioFile.id).where(AudioFile.filename == filename).limit(1))
        return res.scalar_one_or_none() is not None
