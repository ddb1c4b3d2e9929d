# tests/services/test_storage.py
import io
import shutil

import pytest
from starlette.datastructures import Headers, UploadFile

from noticeboard.config import settings
from noticeboard.exceptions import NotFoundError, UpstreamError
from noticeboard.services.storage import FileStorage, file_storage, iter_chunks


@pytest.fixture
def storage(tmp_path):
    return FileStorage(tmp_path)


@pytest.mark.asyncio
async def test_put_stores_under_unique_name(storage, tmp_path):
    upload = UploadFile(
        file=io.BytesIO(b"%PDF-1.4 body"),
        filename="../../Report Card.pdf",
        headers=Headers({"content-type": "application/pdf"})
    )

    stored = await storage.put(upload, "documents")

    assert stored.locator.startswith("documents/")
    assert stored.locator.endswith(".pdf")
    assert stored.original_name == "Report Card.pdf"
    assert stored.mime_type == "application/pdf"
    assert stored.size == len(b"%PDF-1.4 body")
    assert (tmp_path / stored.locator).read_bytes() == b"%PDF-1.4 body"


@pytest.mark.asyncio
async def test_put_defaults_content_type(storage):
    upload = UploadFile(file=io.BytesIO(b"data"), filename="blob")
    stored = await storage.put(upload)
    assert stored.mime_type == "application/octet-stream"


def test_open_and_exists(storage, tmp_path):
    (tmp_path / "uploads").mkdir()
    (tmp_path / "uploads" / "a.txt").write_bytes(b"hello")

    assert storage.exists("uploads/a.txt")
    with storage.open("uploads/a.txt") as handle:
        assert handle.read() == b"hello"


def test_open_missing_raises_not_found(storage):
    assert not storage.exists("uploads/missing.txt")
    with pytest.raises(NotFoundError):
        storage.open("uploads/missing.txt")


def test_locators_cannot_escape_root(storage, tmp_path):
    outside = tmp_path.parent / "outside.txt"
    outside.write_bytes(b"secret")
    try:
        assert not storage.exists("../outside.txt")
        with pytest.raises(NotFoundError):
            storage.open("../outside.txt")
        assert storage.delete("../outside.txt") is False
        assert outside.exists()
    finally:
        outside.unlink()


def test_delete_tolerates_missing_file(storage, tmp_path):
    (tmp_path / "gone.txt").write_bytes(b"x")

    assert storage.delete("gone.txt") is True
    assert storage.delete("gone.txt") is False
    assert storage.delete("") is False


def test_iter_chunks_closes_handle():
    handle = io.BytesIO(b"abcdefghij")

    chunks = list(iter_chunks(handle, chunk_size=4))

    assert chunks == [b"abcd", b"efgh", b"ij"]
    assert handle.closed


@pytest.mark.asyncio
async def test_failed_write_is_upstream_error(storage, tmp_path, monkeypatch):
    def broken_copy(source, target):
        target.write(b"partial")
        raise OSError("disk full")

    monkeypatch.setattr(shutil, "copyfileobj", broken_copy)
    upload = UploadFile(file=io.BytesIO(b"data"), filename="big.pdf")

    with pytest.raises(UpstreamError):
        await storage.put(upload, "notices")

    assert list((tmp_path / "notices").iterdir()) == []


@pytest.mark.asyncio
async def test_shared_storage_writes_under_uploads_path(uploads_dir):
    upload = UploadFile(file=io.BytesIO(b"shared"), filename="memo.txt")

    stored = await file_storage.put(upload, "documents")

    assert file_storage.root == settings.UPLOADS_PATH == uploads_dir
    assert (settings.UPLOADS_PATH / stored.locator).read_bytes() == b"shared"
    assert file_storage.delete(stored.locator)
