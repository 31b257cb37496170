"""
Local-disk storage for uploaded images.

Uploads land in `<root>/tmp`, are promoted into a permanent folder once they
are going to be referenced by a stored record, and are discarded otherwise.
"""

import asyncio
import os
import shutil
import uuid
from pathlib import Path
from typing import Optional, Union

from fastapi import UploadFile

from ..config import logger
from ..errors import ValidationFailure

QUESTION_PAPERS_DIR = "question-papers"
ANSWER_SHEETS_DIR = "answer-sheets"

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff", ".heic"}


class FileStore:

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _folder(self, name: str) -> Path:
        folder = self.root / name
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    async def save_upload(self, upload: UploadFile) -> Path:
        """Write an upload to the temporary folder and return its path."""
        ext = os.path.splitext(upload.filename or "")[1].lower() or ".jpg"
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationFailure(f"Unsupported file type '{ext}' for {upload.filename}")

        data = await upload.read()
        if not data:
            raise ValidationFailure(f"Uploaded file {upload.filename or ''} is empty")

        path = self._folder("tmp") / f"{uuid.uuid4().hex}{ext}"
        await asyncio.to_thread(path.write_bytes, data)
        return path

    async def keep(self, path: Union[str, Path], folder: str, name: Optional[str] = None) -> Path:
        """Move a temporary file into a permanent folder."""
        path = Path(path)
        destination = self._folder(folder) / (name or path.name)
        if path.resolve() == destination.resolve():
            return destination
        await asyncio.to_thread(shutil.move, str(path), str(destination))
        return destination

    def question_paper_path(self, path: Union[str, Path], image_hash: str) -> Path:
        """Where `keep_question_paper` will put the image; nothing is moved."""
        return self.root / QUESTION_PAPERS_DIR / f"{image_hash}{Path(path).suffix.lower()}"

    async def keep_question_paper(self, path: Union[str, Path], image_hash: str) -> Path:
        """Question paper images are named by content hash."""
        path = Path(path)
        return await self.keep(path, QUESTION_PAPERS_DIR, self.question_paper_path(path, image_hash).name)

    async def keep_answer_sheet(self, path: Union[str, Path]) -> Path:
        return await self.keep(path, ANSWER_SHEETS_DIR)

    def discard(self, *paths: Union[str, Path, None]):
        for path in paths:
            if path is None:
                continue
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not delete upload {path}: {e}")
