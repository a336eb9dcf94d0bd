from datetime import datetime
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

class AudioFileCreate(BaseModel):
    filename: str = Field(..., min_length=1, max_length=64)
    original_filename: str = Field(..., min_length=1, max_length=512)
    file_size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=128)
    uuid: str = Field(..., min_length=36, max_length=36)

class AudioFileOut(BaseModel):
    id: int
    filename: str
    original_filename: str
    file_size: int
    mime_type: str
    uuid: str
    created_at: datetime
    download_url: str

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel

class AudioUploadOut(AudioFileOut):
    formatted_size: str

class ReconcileReport(BaseModel):
    orphan_blobs: list[str] = []
    missing_blobs: list[str] = []
    removed_blobs: list[str] = []
    # orphans inside the grace window, left alone this pass
    recent_blobs: list[str] = []

    @property
    def consistent(self) -> bool:
        return not self.orphan_blobs and not self.missing_blobs
