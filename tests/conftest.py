"""Shared fixtures: a throwaway SQLite database and storage root per test.

Nothing here needs Docker; Postgres and S3 are only exercised through mocks.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from audiolink.core.config import Settings
from audiolink.core.db import build_engine, build_sessionmaker, init_models
from audiolink.main import create_app
from audiolink.modules.audio.service import AudioFileService
from audiolink.platform.adapters.storage_local import LocalFilesystemStorage


AUDIO_BYTES = b"ID3\x04\x00" + bytes(range(256)) * 16


class RecordingBus:
    """Event bus double that keeps every published event."""

    def __init__(self):
        self.events: list[dict] = []

    async def publish(self, topic, key, value, headers=None):
        self.events.append({"topic": topic, "key": key, "value": value})

    async def close(self):
        return None

    @property
    def types(self) -> list[str]:
        return [e["value"]["event_type"] for e in self.events]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ENV="local",
        DATABASE_DSN=f"sqlite+aiosqlite:///{tmp_path / 'audiolink.db'}",
        LOCAL_STORAGE_ROOT=str(tmp_path / "uploads"),
        PUBLIC_BASE_URL="http://files.test",
        STREAM_CHUNK_SIZE=1024,
    )


@pytest.fixture
async def engine(settings):
    eng = build_engine(settings)
    await init_models(eng, settings)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture
def storage(settings) -> LocalFilesystemStorage:
    return LocalFilesystemStorage(settings.LOCAL_STORAGE_ROOT)


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def make_service(settings, storage, bus):
    def _make(session) -> AudioFileService:
        return AudioFileService(session, storage=storage, bus=bus, settings=settings, base_url="http://files.test")
    return _make


@pytest.fixture
def service(session, make_service) -> AudioFileService:
    return make_service(session)


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    await init_models(application.state.engine, settings)
    yield application
    await application.state.registry.close()
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    """Async test client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
