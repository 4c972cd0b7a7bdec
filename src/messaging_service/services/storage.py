from __future__ import annotations

import mimetypes
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from fastapi import UploadFile, status
from starlette.concurrency import run_in_threadpool

from ..logging_config import logger
from ..models.message import AttachmentKind


class AttachmentRejected(Exception):
    """An uploaded file failed validation; carries the HTTP status to report."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


@dataclass(frozen=True)
class StoredAttachment:
    kind: str
    url: str
    mime_type: str
    size_bytes: int
    position: int = 0


class AttachmentStorage:
    """
    Saves uploaded media under a local directory and returns the public URL
    it is served from. Optimisation of images and videos is not done here.
    """

    def __init__(
        self,
        root_dir: str | Path,
        url_prefix: str,
        allowed_types: Iterable[str],
        max_size_bytes: int,
        max_files: int = 10,
    ):
        self.root_dir = Path(root_dir)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.allowed_types = {t.lower() for t in allowed_types}
        self.max_size_bytes = max_size_bytes
        self.max_files = max_files
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def kind_for(self, content_type: Optional[str]) -> str:
        mime = (content_type or "").lower()
        if mime not in self.allowed_types:
            raise AttachmentRejected(
                status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                "Invalid file type. Only images and videos are allowed.",
            )
        if mime.startswith("image/"):
            return AttachmentKind.IMAGE.value
        return AttachmentKind.VIDEO.value

    def _filename_for(self, upload: UploadFile, mime: str) -> str:
        suffix = Path(upload.filename or "").suffix.lower()
        if not suffix:
            suffix = mimetypes.guess_extension(mime) or ""
        return f"media-{int(time.time() * 1000)}-{secrets.token_hex(6)}{suffix}"

    async def save(self, upload: UploadFile, position: int = 0) -> StoredAttachment:
        mime = (upload.content_type or "").lower()
        kind = self.kind_for(mime)

        data = await upload.read(self.max_size_bytes + 1)
        if len(data) > self.max_size_bytes:
            raise AttachmentRejected(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                f"File '{upload.filename}' exceeds the {self.max_size_bytes} byte limit.",
            )

        filename = self._filename_for(upload, mime)
        await run_in_threadpool((self.root_dir / filename).write_bytes, data)
        logger.debug("Stored attachment %s (%s, %d bytes)", filename, mime, len(data))

        return StoredAttachment(
            kind=kind,
            url=f"{self.url_prefix}/{filename}",
            mime_type=mime,
            size_bytes=len(data),
            position=position,
        )

    async def save_all(self, uploads: Sequence[UploadFile]) -> List[StoredAttachment]:
        """
        Validate the whole batch first, then persist each file in order.

        All or nothing: if any file is rejected while saving, the files already
        written for this batch are removed before the error propagates.
        """
        if len(uploads) > self.max_files:
            raise AttachmentRejected(
                status.HTTP_400_BAD_REQUEST,
                f"A message can carry at most {self.max_files} media files.",
            )
        for upload in uploads:
            self.kind_for(upload.content_type)
        stored: List[StoredAttachment] = []
        try:
            for position, upload in enumerate(uploads):
                stored.append(await self.save(upload, position))
        except Exception:
            await self.discard(stored)
            raise
        return stored

    def path_for(self, stored: StoredAttachment) -> Path:
        return self.root_dir / stored.url.rsplit("/", 1)[-1]

    async def discard(self, stored: Iterable[StoredAttachment]) -> None:
        """Delete files that were written but will never be referenced by a message."""
        for attachment in stored:
            path = self.path_for(attachment)
            await run_in_threadpool(path.unlink, missing_ok=True)
            logger.info("Discarded orphaned attachment %s", path.name)
