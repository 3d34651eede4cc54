"""Media capabilities, byte sources and archive file naming."""

import asyncio
import io
import mimetypes
import threading
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

import aiohttp
from loguru import logger
from PIL import Image as PILImage

from lark_md.blocks import Bitmap, Block, ImageSources
from lark_md.errors import DownloadCancelled


class CancelToken:
    """Cancellation flag handed to a single file download."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise DownloadCancelled("Download cancelled")


async def fetch_image_sources(block: Block) -> Optional[ImageSources]:
    """Ask the host for the sources of an image block; None when unavailable."""
    if block.image_fetcher is None:
        return None

    token = block.image.token
    try:
        return await block.image_fetcher(token)
    except Exception as e:
        logger.warning("Failed to fetch image sources for token={}: {}", token, e)
        return None


def encode_bitmap(bitmap: Bitmap) -> bytes:
    """Encode a raw RGBA pixel buffer as PNG."""
    image = PILImage.frombytes("RGBA", (bitmap.width, bitmap.height), bytes(bitmap.pixels))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


async def fetch_whiteboard_sources(block: Block) -> Optional[ImageSources]:
    """Render a whiteboard through the host bitmap call and encode it as PNG."""
    if block.bitmap_fetcher is None:
        return None

    try:
        bitmap = await block.bitmap_fetcher()
        if bitmap is None:
            return None
        return ImageSources(content=encode_bitmap(bitmap))
    except Exception as e:
        logger.warning("Failed to render whiteboard {}: {}", block.whiteboard_token, e)
        return None


def media_filename(name: str, mime_type: str = "", fallback: str = "image") -> str:
    """Archive-safe file name, adding an extension from the MIME type if missing."""
    name = PurePosixPath(name.replace('\\', '/')).name or fallback
    if not PurePosixPath(name).suffix and mime_type:
        name += mimetypes.guess_extension(mime_type) or ''
    return name


class SourceReader:
    """Read media bytes from http(s) URLs or local paths.

    Example:
        async with SourceReader(base_dir=Path("export")) as reader:
            data = await reader.read("https://example.com/a.png")
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, base_dir: Optional[Path] = None, timeout: float = 30.0,
                 headers: Optional[Dict[str, str]] = None):
        self.base_dir = base_dir or Path.cwd()
        self.timeout = timeout
        self.headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "SourceReader":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers
            )
        return self._session

    async def read(self, src: str, cancel: Optional[CancelToken] = None) -> bytes:
        """Read all bytes of ``src``; raises DownloadCancelled if ``cancel`` fires."""
        if cancel is not None:
            cancel.raise_if_cancelled()

        if src.startswith(('http://', 'https://')):
            return await self._read_http(src, cancel)

        path = Path(src).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        logger.debug("Reading local media: {}", path)
        data = await asyncio.to_thread(path.read_bytes)

        if cancel is not None:
            cancel.raise_if_cancelled()
        return data

    async def _read_http(self, url: str, cancel: Optional[CancelToken]) -> bytes:
        logger.debug("Downloading media: {}", url)
        chunks = []
        async with self._get_session().get(url) as response:
            response.raise_for_status()
            async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                chunks.append(chunk)
        return b''.join(chunks)


class FilenameRegistry:
    """Unique archive paths for one assembly.

    The first ``images/a.png`` is kept as is; later ones become
    ``images/a-1.png``, ``images/a-2.png`` and so on.
    """

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._used = set()
        self._lock = threading.Lock()

    def register(self, path: str) -> str:
        with self._lock:
            candidate = path
            if candidate in self._used:
                posix = PurePosixPath(path)
                counter = self._counters.get(path, 0)
                while candidate in self._used:
                    counter += 1
                    candidate = str(posix.with_name(f"{posix.stem}-{counter}{posix.suffix}"))
                self._counters[path] = counter

            self._used.add(candidate)
            return candidate
