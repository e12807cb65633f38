"""文件管理：通过 Files API 进行可恢复上传、查询、列举与删除。

File management through the Gemini Files API.

Uploads use the resumable protocol: a ``start`` command returns an
upload URL, then the bytes are sent with ``upload, finalize``.
"""

from __future__ import annotations

import asyncio
import mimetypes
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from gemini_ai.config import DEFAULT_API_VERSION
from gemini_ai.errors import DecodeFailure, FileProcessingError, ValidationError
from gemini_ai.files.progress import DEFAULT_CHUNK_SIZE, ProgressTrackingBody
from gemini_ai.resilience.retry import RetryExecutor, RetryPolicy
from gemini_ai.telemetry import get_logger
from gemini_ai.transport.base import TransportRequest
from gemini_ai.types.content import FileDataPart

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from gemini_ai.files.progress import UploadProgress
    from gemini_ai.transport.base import Transport, TransportResponse

logger = get_logger(__name__)


class FileState(str, Enum):
    """Processing state of an uploaded file."""

    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"


class FileInfo(BaseModel):
    """Metadata of a file stored by the service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    display_name: str | None = Field(default=None, alias="displayName")
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    size_bytes: int | None = Field(default=None, alias="sizeBytes")
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")
    expiration_time: str | None = Field(default=None, alias="expirationTime")
    sha256_hash: str | None = Field(default=None, alias="sha256Hash")
    uri: str = ""
    state: FileState = FileState.STATE_UNSPECIFIED
    error: Any = None
    video_metadata: dict[str, Any] | None = Field(default=None, alias="videoMetadata")

    def to_part(self) -> FileDataPart:
        """Reference this file from a request."""
        return FileDataPart(mime_type=self.mime_type, file_uri=self.uri)


def parse_file_id(name: str) -> str:
    """Accept ``files/abc`` or ``abc`` and return ``abc``.

    Raises:
        ValidationError: If the id is empty
    """
    file_id = name.removeprefix("files/").strip() if isinstance(name, str) else ""
    if not file_id:
        raise ValidationError("File ID must not be empty", field="name", actual=name)
    return file_id


class FileManager:
    """Upload and manage files referenced by generation requests.

    Example:
        >>> files = FileManager(transport)
        >>> info = await files.upload_file("report.pdf", on_progress=print)
        >>> info = await files.wait_for_processing(info.name)
        >>> await model.generate_content(
        ...     GenerateContentRequest(contents=[Content.user(info.to_part(), "Summarize")])
        ... )
    """

    def __init__(
        self,
        transport: Transport,
        *,
        policy: RetryPolicy | None = None,
        api_version: str = DEFAULT_API_VERSION,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._transport = transport
        self._executor = RetryExecutor(policy or RetryPolicy.no_retry(), sleep=sleep)
        self._api_version = api_version
        self._sleep = sleep or asyncio.sleep

    async def _send(self, request: TransportRequest) -> TransportResponse:
        async def attempt() -> TransportResponse:
            return await self._transport.send(request)

        result = await self._executor.execute(attempt)
        return result.unwrap()

    async def upload_file(
        self,
        path: str | Path,
        *,
        display_name: str | None = None,
        mime_type: str | None = None,
        on_progress: Callable[[UploadProgress], Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> FileInfo:
        """Upload a local file.

        Args:
            path: File to upload
            display_name: Display name (defaults to the file name)
            mime_type: MIME type (guessed from the suffix otherwise)
            on_progress: Progress callback, sync or async
            chunk_size: Bytes per body chunk

        Returns:
            Metadata of the uploaded file

        Raises:
            ValidationError: If the file is missing or its MIME type unknown
            GenerationError: On transport or service failure
        """
        path = Path(path)
        if not path.is_file():
            raise ValidationError(f"Not a file: {path}", field="path", actual=str(path))
        size = path.stat().st_size
        mime_type = mime_type or mimetypes.guess_type(path.name)[0]
        if not mime_type:
            raise ValidationError(
                f"Unknown MIME type for {path.name}", field="mime_type"
            ).with_hint("Pass mime_type explicitly")

        start = await self._send(
            TransportRequest(
                "POST",
                f"/upload/{self._api_version}/files",
                json={"file": {"display_name": display_name or path.name}},
                headers={
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(size),
                    "X-Goog-Upload-Header-Content-Type": mime_type,
                },
            )
        )
        upload_url = start.headers.get("x-goog-upload-url")
        if not upload_url:
            raise DecodeFailure("Upload session response has no upload URL")

        body = ProgressTrackingBody(
            path, total_bytes=size, callback=on_progress, chunk_size=chunk_size
        )
        # The body is single-use, so the finalize step is never retried
        response = await self._transport.send(
            TransportRequest(
                "POST",
                upload_url,
                content=body,
                headers={
                    "Content-Length": str(size),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
            )
        )
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("file"), dict):
            raise DecodeFailure("Upload response has no file", fragment=str(data))
        info = FileInfo.model_validate(data["file"])
        logger.info("Uploaded file", name=info.name, size_bytes=size, mime_type=mime_type)
        return info

    async def get_file(self, name: str) -> FileInfo:
        """Fetch file metadata by ``files/abc`` or ``abc``."""
        file_id = parse_file_id(name)
        response = await self._send(
            TransportRequest("GET", f"/{self._api_version}/files/{file_id}")
        )
        return FileInfo.model_validate(response.json())

    async def list_files(self, *, page_size: int | None = None) -> list[FileInfo]:
        """List all files, following pagination."""
        files: list[FileInfo] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {}
            if page_size:
                params["pageSize"] = page_size
            if page_token:
                params["pageToken"] = page_token
            response = await self._send(
                TransportRequest("GET", f"/{self._api_version}/files", params=params or None)
            )
            data = response.json()
            files.extend(FileInfo.model_validate(f) for f in data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return files

    async def delete_file(self, name: str) -> None:
        file_id = parse_file_id(name)
        await self._send(TransportRequest("DELETE", f"/{self._api_version}/files/{file_id}"))
        logger.info("Deleted file", name=f"files/{file_id}")

    async def delete_files_by_display_name(self, display_name: str) -> int:
        """Delete every file with the given display name.

        Returns:
            Number of files deleted
        """
        deleted = 0
        for info in await self.list_files():
            if info.display_name == display_name:
                await self.delete_file(info.name)
                deleted += 1
        return deleted

    async def wait_for_processing(
        self,
        name: str,
        *,
        poll_interval: float = 1.0,
        max_polls: int = 30,
    ) -> FileInfo:
        """Poll until the file is ACTIVE.

        Args:
            name: File name
            poll_interval: Seconds between polls
            max_polls: Maximum number of polls

        Returns:
            Metadata of the active file

        Raises:
            FileProcessingError: If processing failed or did not finish in time
        """
        info: FileInfo | None = None
        for _ in range(max_polls):
            info = await self.get_file(name)
            if info.state == FileState.ACTIVE:
                return info
            if info.state == FileState.FAILED:
                raise FileProcessingError(
                    f"File {info.name} processing failed", name=info.name, state=info.state.value
                )
            logger.debug("Waiting for file processing", name=info.name, state=info.state.value)
            await self._sleep(poll_interval)

        raise FileProcessingError(
            f"Timed out waiting for file {name} to process",
            name=name,
            state=info.state.value if info else None,
        )
