from urllib.parse import quote
from fastapi import APIRouter, Depends, File, Header, Query, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from audiolink.core.errors import NotFoundError, SizeLimitError
from audiolink.modules.audio.formatting import format_file_size
from audiolink.modules.audio.schemas import AudioFileOut, AudioUploadOut
from audiolink.modules.audio.service import AudioFileService

router = APIRouter()

async def get_session(request: Request):
    async with request.app.state.sessionmaker() as session:
        yield session

def svc(request: Request, session: AsyncSession = Depends(get_session)) -> AudioFileService:
    settings = request.app.state.settings
    registry = request.app.state.registry
    return AudioFileService(
        session,
        storage=registry.object_storage(),
        bus=registry.event_bus(),
        settings=settings,
        base_url=settings.PUBLIC_BASE_URL or str(request.base_url),
    )

def content_disposition(filename: str) -> str:
    fallback = "".join(c for c in filename if 32 <= ord(c) < 127 and c not in '"\\') or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"

@router.post("/upload", response_model=AudioUploadOut, status_code=status.HTTP_201_CREATED)
async def upload_audio(
    request: Request,
    file: UploadFile = File(..., alias="audioFile"),
    service: AudioFileService = Depends(svc),
):
    limit = request.app.state.settings.MAX_UPLOAD_BYTES
    if file.size is not None and file.size > limit:
        raise SizeLimitError(f"File too large (>{format_file_size(limit)})")
    data = await file.read()
    return await service.upload(file.filename or "", file.content_type, file.size, data)

@router.get("/files", response_model=list[AudioFileOut])
async def list_audio_files(
    limit: int | None = Query(default=None, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: AudioFileService = Depends(svc),
):
    return await service.list_files(limit=limit, offset=offset)

@router.get("/file/{file_uuid}", response_model=AudioFileOut)
async def get_audio_file(file_uuid: str, service: AudioFileService = Depends(svc)):
    return await service.get_by_uuid(file_uuid)

@router.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_audio_file(file_id: int, service: AudioFileService = Depends(svc)):
    if not await service.delete(file_id):
        raise NotFoundError()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/download/{file_uuid}")
async def download_audio(file_uuid: str, service: AudioFileService = Depends(svc)):
    blob = await service.open_download(file_uuid)
    headers = {
        "Content-Disposition": content_disposition(blob.record.original_filename),
        "Content-Length": str(blob.total),
    }
    return StreamingResponse(blob.chunks, media_type=blob.record.mime_type, headers=headers)

@router.get("/stream/{file_uuid}")
async def stream_audio(
    file_uuid: str,
    range_header: str | None = Header(default=None, alias="range"),
    service: AudioFileService = Depends(svc),
):
    blob = await service.open_stream(file_uuid, range_header)
    headers = {"Accept-Ranges": "bytes", "Content-Length": str(blob.length)}
    status_code = status.HTTP_200_OK
    if blob.byte_range is not None:
        headers["Content-Range"] = blob.byte_range.content_range(blob.total)
        status_code = status.HTTP_206_PARTIAL_CONTENT
    return StreamingResponse(blob.chunks, status_code=status_code, media_type=blob.record.mime_type, headers=headers)
