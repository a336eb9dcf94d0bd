"""Tests for the audio HTTP endpoints."""

from __future__ import annotations

import pytest

from audiolink.modules.audio.router import content_disposition

from conftest import AUDIO_BYTES


async def _upload(client, name="voice memo.mp3", data=AUDIO_BYTES, mime="audio/mpeg"):
    return await client.post("/api/audio/upload", files={"audioFile": (name, data, mime)})


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upload_returns_record_with_links(client):
    resp = await _upload(client)
    assert resp.status_code == 201
    body = resp.json()

    assert set(body) == {
        "id", "filename", "originalFilename", "fileSize", "mimeType",
        "uuid", "createdAt", "downloadUrl", "formattedSize",
    }
    assert body["originalFilename"] == "voice memo.mp3"
    assert body["filename"] == f"{body['uuid']}.mp3"
    assert body["fileSize"] == len(AUDIO_BYTES)
    assert body["mimeType"] == "audio/mpeg"
    assert body["formattedSize"] == "4.0 KB"
    assert body["downloadUrl"] == f"http://files.test/api/audio/download/{body['uuid']}"
    assert "T" in body["createdAt"]


@pytest.mark.asyncio
async def test_upload_uses_request_base_url_without_public_base(settings):
    from httpx import ASGITransport, AsyncClient
    from audiolink.core.db import init_models
    from audiolink.main import create_app

    app = create_app(settings.model_copy(update={"PUBLIC_BASE_URL": None}))
    await init_models(app.state.engine, app.state.settings)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://share.local:8080") as c:
            body = (await _upload(c)).json()
    finally:
        await app.state.engine.dispose()
    assert body["downloadUrl"] == f"http://share.local:8080/api/audio/download/{body['uuid']}"


@pytest.mark.asyncio
async def test_upload_rejects_non_audio(client):
    resp = await _upload(client, name="doc.pdf", data=b"%PDF-1.4", mime="application/pdf")
    assert resp.status_code == 415
    assert resp.json() == {"message": "Only audio files are allowed"}

    listed = await client.get("/api/audio/files")
    assert listed.json() == []


@pytest.mark.asyncio
async def test_upload_rejects_oversized_payload(settings):
    from httpx import ASGITransport, AsyncClient
    from audiolink.core.db import init_models
    from audiolink.main import create_app

    app = create_app(settings.model_copy(update={"MAX_UPLOAD_BYTES": 1024}))
    await init_models(app.state.engine, app.state.settings)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            resp = await _upload(c, data=b"x" * 2048)
    finally:
        await app.state.engine.dispose()
    assert resp.status_code == 413
    assert "too large" in resp.json()["message"]


@pytest.mark.asyncio
async def test_storage_failure_hides_paths_in_production(settings, monkeypatch):
    from httpx import ASGITransport, AsyncClient
    from audiolink.core.db import init_models
    from audiolink.core.errors import StorageError
    from audiolink.main import create_app

    app = create_app(settings.model_copy(update={"ENV": "prod"}))
    await init_models(app.state.engine, app.state.settings)
    storage = app.state.registry.object_storage()

    def fail_put(key, data, content_type):
        raise StorageError(f"Failed to write blob {storage.root}/{key}: disk full")

    monkeypatch.setattr(storage, "put_bytes", fail_put)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            resp = await _upload(c)
            listed = await c.get("/api/audio/files")
    finally:
        await app.state.engine.dispose()
    assert resp.status_code == 500
    assert resp.json() == {"message": "Storage operation failed"}
    assert listed.json() == []


@pytest.mark.asyncio
async def test_upload_without_file_is_bad_request(client):
    resp = await client.post("/api/audio/upload", data={"other": "field"})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Invalid request")


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_files_newest_first(client):
    first = (await _upload(client, name="one.mp3")).json()
    second = (await _upload(client, name="two.mp3")).json()

    resp = await client.get("/api/audio/files")
    assert resp.status_code == 200
    files = resp.json()
    assert [f["uuid"] for f in files] == [second["uuid"], first["uuid"]]
    assert "formattedSize" not in files[0]
    assert files[0]["downloadUrl"].endswith(second["uuid"])

    limited = await client.get("/api/audio/files", params={"limit": 1})
    assert [f["uuid"] for f in limited.json()] == [second["uuid"]]


@pytest.mark.asyncio
async def test_get_file_by_uuid(client):
    uploaded = (await _upload(client)).json()

    resp = await client.get(f"/api/audio/file/{uploaded['uuid']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == uploaded["id"]

    missing = await client.get(f"/api/audio/file/{uploaded['uuid'][:8]}")
    assert missing.status_code == 404
    assert missing.json() == {"message": "File not found"}


# ---------------------------------------------------------------------------
# Download / stream
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_download_sends_attachment(client):
    uploaded = (await _upload(client, name="voice memo.mp3")).json()

    resp = await client.get(f"/api/audio/download/{uploaded['uuid']}")
    assert resp.status_code == 200
    assert resp.content == AUDIO_BYTES
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["content-length"] == str(len(AUDIO_BYTES))
    assert resp.headers["content-disposition"].startswith('attachment; filename="voice memo.mp3"')


@pytest.mark.asyncio
async def test_download_unknown_uuid_is_404(client):
    resp = await client.get("/api/audio/download/00000000-0000-4000-8000-000000000000")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_stream_without_range_sends_everything(client):
    uploaded = (await _upload(client)).json()

    resp = await client.get(f"/api/audio/stream/{uploaded['uuid']}")
    assert resp.status_code == 200
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.headers["content-length"] == str(len(AUDIO_BYTES))
    assert "content-disposition" not in resp.headers
    assert resp.content == AUDIO_BYTES


@pytest.mark.asyncio
async def test_stream_honours_byte_range(client):
    uploaded = (await _upload(client)).json()
    total = len(AUDIO_BYTES)

    resp = await client.get(f"/api/audio/stream/{uploaded['uuid']}", headers={"Range": "bytes=1000-1999"})
    assert resp.status_code == 206
    assert resp.headers["content-range"] == f"bytes 1000-1999/{total}"
    assert resp.headers["content-length"] == "1000"
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.content == AUDIO_BYTES[1000:2000]


@pytest.mark.asyncio
async def test_stream_unsatisfiable_range_is_416(client):
    uploaded = (await _upload(client)).json()
    total = len(AUDIO_BYTES)

    resp = await client.get(f"/api/audio/stream/{uploaded['uuid']}", headers={"Range": f"bytes={total + 10}-"})
    assert resp.status_code == 416
    assert resp.headers["content-range"] == f"bytes */{total}"


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_then_gone(client):
    uploaded = (await _upload(client)).json()

    resp = await client.delete(f"/api/audio/files/{uploaded['id']}")
    assert resp.status_code == 204
    assert resp.content == b""

    assert (await client.get(f"/api/audio/file/{uploaded['uuid']}")).status_code == 404
    assert (await client.get(f"/api/audio/download/{uploaded['uuid']}")).status_code == 404
    assert (await client.delete(f"/api/audio/files/{uploaded['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_with_non_integer_id_is_bad_request(client):
    resp = await client.delete("/api/audio/files/not-a-number")
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_content_disposition_escapes_unsafe_names():
    header = content_disposition('na"me\\ünï.mp3')
    assert header.startswith('attachment; filename="namen.mp3"')
    assert "filename*=UTF-8''na%22me%5C%C3%BCn%C3%AF.mp3" in header
    header.encode("latin-1")


def test_content_disposition_falls_back_when_nothing_printable():
    assert content_disposition("日本.wav").startswith('attachment; filename=".wav"')
    assert content_disposition("日本").startswith('attachment; filename="download"')
