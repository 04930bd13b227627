import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

import httpx

from studyhub.core.domain.analysis import FileKind
from studyhub.core.domain.errors import FileFetchError, SourceNotFoundError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

USER_AGENT = "StudyHubAnalysis/0.1"
MAX_DOWNLOAD_BYTES = 50 * 1024 * 1024

_IMAGE_RE = re.compile(r"(jpg|jpeg|png|bmp|gif|tiff?)$")

MIME_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "bmp": "image/bmp",
    "gif": "image/gif",
    "tif": "image/tiff",
    "tiff": "image/tiff",
}


def classify_file_type(file_type: str) -> FileKind:
    """
    Map a loose file-type hint ("pdf", ".PNG", "image/jpeg", "application/pdf")
    to a FileKind. Unknown hints are rejected before any I/O happens.
    """
    hint = (file_type or "").strip().lower()
    if "pdf" in hint:
        return FileKind.PDF
    if hint and _IMAGE_RE.search(hint):
        return FileKind.IMAGE
    raise UnsupportedFileTypeError(f"Unsupported file type for question extraction: {file_type}")


def mime_type_for(file_type: str) -> str:
    hint = (file_type or "").strip().lower()
    if "/" in hint:
        return hint
    ext = hint.rsplit(".", 1)[-1]
    return MIME_TYPES.get(ext, "application/octet-stream")


def is_remote(file_path: str) -> bool:
    return file_path.lower().startswith(("http://", "https://"))


class SourceFetcher:
    """Loads document bytes from a URL (bounded by a timeout) or a local path."""

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        max_bytes: int = MAX_DOWNLOAD_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._transport = transport

    async def fetch(self, file_path: str) -> bytes:
        if is_remote(file_path):
            return await self._download(file_path)
        return await self._read_local(Path(file_path))

    async def _download(self, url: str) -> bytes:
        logger.info("Downloading source document %s", url)
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    declared = resp.headers.get("Content-Length")
                    if declared and declared.isdigit() and int(declared) > self.max_bytes:
                        raise self._too_large(int(declared))
                    chunks = []
                    received = 0
                    async for chunk in resp.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_bytes:
                            raise self._too_large(received)
                        chunks.append(chunk)
        except httpx.TimeoutException as exc:
            raise FileFetchError(f"Failed to download file: timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise FileFetchError(
                f"Failed to download file: HTTP {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FileFetchError(f"Failed to download file: {exc}") from exc

        content = b"".join(chunks)
        logger.info("Downloaded %s bytes from %s", len(content), url)
        return content

    def _too_large(self, size: int) -> FileFetchError:
        return FileFetchError(f"Failed to download file: {size} bytes exceeds the {self.max_bytes} byte limit")

    async def _read_local(self, path: Path) -> bytes:
        if not path.is_file():
            raise SourceNotFoundError(f"File not found: {path}")
        data = await asyncio.to_thread(path.read_bytes)
        logger.info("Read %s bytes from %s", len(data), path)
        return data
