# backend/noticeboard/services/storage.py
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional
from uuid import uuid4

from fastapi import UploadFile

from ..config import settings
from ..exceptions import NotFoundError, UpstreamError
from ..utils.logging import service_logger

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredFile:
    locator: str
    original_name: str
    mime_type: str
    size: int


class FileStorage:
    """Local-disk stored-file service; locators are paths relative to UPLOADS_PATH"""

    def __init__(self, root: Optional[Path] = None):
        self._root = Path(root) if root else None

    @property
    def root(self) -> Path:
        # Read lazily so a settings override applies to the shared instance
        return self._root or settings.UPLOADS_PATH

    def _resolve(self, locator: str) -> Optional[Path]:
        """Map a locator to a path inside the storage root, or None if it escapes it"""
        if not locator:
            return None
        root = self.root.resolve()
        path = (root / locator).resolve()
        try:
            path.relative_to(root)
        except ValueError:
            return None
        return path

    async def put(self, upload_file: UploadFile, directory: str = "misc") -> StoredFile:
        """Save an uploaded file under a unique name and return its reference"""
        target_dir = self.root / directory
        target_dir.mkdir(parents=True, exist_ok=True)

        original_name = Path(upload_file.filename or "upload").name
        file_path = target_dir / f"{uuid4()}{Path(original_name).suffix}"

        try:
            with file_path.open("wb") as buffer:
                shutil.copyfileobj(upload_file.file, buffer)
        except OSError as e:
            service_logger.error(f"Error storing uploaded file: {str(e)}", extra={
                "original_name": original_name
            })
            file_path.unlink(missing_ok=True)
            raise UpstreamError("Could not store uploaded file")

        stored = StoredFile(
            locator=file_path.relative_to(self.root).as_posix(),
            original_name=original_name,
            mime_type=upload_file.content_type or "application/octet-stream",
            size=file_path.stat().st_size
        )
        service_logger.debug("Stored uploaded file", extra={
            "locator": stored.locator,
            "original_name": stored.original_name,
            "size": stored.size
        })
        return stored

    def exists(self, locator: str) -> bool:
        path = self._resolve(locator)
        return path is not None and path.is_file()

    def open(self, locator: str) -> BinaryIO:
        path = self._resolve(locator)
        if path is None or not path.is_file():
            raise NotFoundError("File not found on server")
        try:
            return path.open("rb")
        except OSError as e:
            service_logger.error(f"Error opening stored file: {str(e)}", extra={"locator": locator})
            raise UpstreamError("Could not read stored file")

    def delete(self, locator: str) -> bool:
        """Best-effort removal; a missing target is not an error"""
        path = self._resolve(locator)
        if path is None or not path.exists():
            return False
        try:
            path.unlink()
            service_logger.info(f"Deleted stored file: {locator}")
            return True
        except OSError as e:
            service_logger.error(f"Error deleting stored file: {str(e)}", extra={
                "locator": locator
            })
            return False


def iter_chunks(handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a file's bytes and close it once exhausted"""
    try:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


file_storage = FileStorage()
