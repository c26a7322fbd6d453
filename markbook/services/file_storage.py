import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import UploadFile

from markbook.core.config.settings import get_settings
from markbook.utils.helpers import get_file_extension

logger = logging.getLogger(__name__)

STAGING_DIR = ".staging"
CHUNK_SIZE = 1024 * 1024


class StorageError(Exception):
    """The storage tree could not be written."""


class FileTypeNotAllowed(Exception):
    pass


class FileTooLarge(Exception):
    pass


@dataclass
class StagedFile:
    """A validated upload written to the staging area, not yet visible under its final path."""

    file_id: str
    staged_path: str
    final_path: str
    relative_path: str
    size: int

    def promote(self) -> None:
        os.replace(self.staged_path, self.final_path)

    def discard(self) -> None:
        try:
            os.remove(self.staged_path)
        except OSError as e:
            logger.warning(f"Could not remove staged file {self.staged_path}: {str(e)}")


class FileStorage:
    """
    Answer attachments stored as ``{root}/{studentId}/{uuid}.{ext}``.

    Uploads are written to a per-student staging directory first and only
    moved into place once the database row referencing them is committed.
    """

    def __init__(self, root: str, allowed_extensions: Iterable[str], max_size: int):
        self.root = (root or "").rstrip("/\\")
        self.allowed_extensions = {ext.lower().lstrip(".") for ext in allowed_extensions}
        self.max_size = max_size

    def is_allowed_file(self, filename: str) -> bool:
        return get_file_extension(filename) in self.allowed_extensions

    async def read_upload(self, file: UploadFile) -> bytes:
        """
        Read an upload into memory, refusing it as soon as it passes the size cap

        Raises:
            FileTooLarge: If the upload is bigger than ``max_size``
        """
        if file.size is not None and file.size > self.max_size:
            raise FileTooLarge(f"File too large (max {self.max_size // (1024 * 1024)} MB)")
        chunks = []
        total = 0
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > self.max_size:
                raise FileTooLarge(f"File too large (max {self.max_size // (1024 * 1024)} MB)")
            chunks.append(chunk)
        return b"".join(chunks)

    def validate(self, filename: str) -> str:
        """Return the lower-case extension of an allowed filename"""
        if not self.is_allowed_file(filename):
            raise FileTypeNotAllowed("File type not permitted")
        return get_file_extension(filename)

    def _student_dir(self, student_id: int) -> str:
        if not self.root:
            raise StorageError("File storage path is not configured")
        return os.path.join(self.root, str(int(student_id)))

    def stage(self, student_id: int, extension: str, content: bytes) -> StagedFile:
        student_dir = self._student_dir(student_id)
        staging_dir = os.path.join(student_dir, STAGING_DIR)
        try:
            os.makedirs(staging_dir, exist_ok=True)
        except OSError as e:
            raise StorageError("Failed to create storage directory") from e

        file_id = f"{uuid.uuid4().hex}.{extension}" if extension else uuid.uuid4().hex
        staged_path = os.path.join(staging_dir, file_id)
        try:
            with open(staged_path, "wb") as buffer:
                buffer.write(content)
        except OSError as e:
            raise StorageError("Failed to save uploaded file") from e

        return StagedFile(
            file_id=file_id,
            staged_path=staged_path,
            final_path=os.path.join(student_dir, file_id),
            relative_path=f"{int(student_id)}/{file_id}",
            size=len(content),
        )

    def path_for(self, student_id: int, file_id: str) -> str:
        # basename keeps a crafted file id inside the student's directory
        return os.path.join(self._student_dir(student_id), os.path.basename(file_id))

    def exists(self, student_id: int, file_id: str) -> bool:
        return os.path.isfile(self.path_for(student_id, file_id))

    def delete_file(self, student_id: int, file_id: str) -> bool:
        """
        Best-effort removal of a stored attachment

        Returns:
            True if a file was removed, False otherwise
        """
        try:
            file_path = self.path_for(student_id, file_id)
            if os.path.isfile(file_path):
                os.remove(file_path)
                return True
            return False
        except (OSError, StorageError) as e:
            logger.warning(f"Could not delete stored file {file_id} for student {student_id}: {str(e)}")
            return False


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


def get_file_storage() -> FileStorage:
    settings = get_settings()
    return FileStorage(
        root=settings.FILE_STORAGE_PATH,
        allowed_extensions=settings.ALLOWED_EXTENSIONS,
        max_size=settings.MAX_UPLOAD_SIZE,
    )
