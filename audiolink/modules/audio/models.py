from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, BigInteger
from audiolink.core.base import Base, CreatedAtMixin

class AudioFile(Base, CreatedAtMixin):
    __tablename__ = "audio_files"

    # "filename" is the blob key in object storage: uuid + original extension
    filename: Mapped[str] = mapped_column(String(64), unique=True)
    original_filename: Mapped[str] = mapped_column(String(512))
    file_size: Mapped[int] = mapped_column(BigInteger)
    mime_type: Mapped[str] = mapped_column(String(128))
    uuid: Mapped[str] = mapped_column(String(36), unique=True, index=True)

    def __repr__(self) -> str:
        return f"AudioFile(id={self.id!r}, uuid={self.uuid!r}, filename={self.filename!r})"
