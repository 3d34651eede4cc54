"""Load docx block snapshots exported from the Lark page."""

import base64
import json
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from lark_md.blocks import Bitmap, Block, BlockType, ImageSources
from lark_md.document import Document
from lark_md.errors import SnapshotError
from lark_md.media import CancelToken, SourceReader


class SnapshotClient:
    """Read a snapshot file and bind host capabilities onto its blocks.

    Snapshot layout::

        {
          "title": "Weekly notes",
          "language": "en",
          "root": {"type": "page", "snapshot": {...}, "children": [...]},
          "media": {"<token>": "https://... or path/relative/to/snapshot"}
        }

    A bare block object is accepted as the root.
    """

    def __init__(self, reader: SourceReader):
        self.reader = reader
        logger.debug("SnapshotClient initialized: base_dir={}", reader.base_dir)

    def load(self, path: Path, title: Optional[str] = None,
             default_title: Optional[str] = None) -> Document:
        """Read a snapshot file into a Document.

        The title is taken from ``title``, then the snapshot, then
        ``default_title``, then the file name.
        """
        logger.info("Reading snapshot: {}", path)

        if not path.exists():
            raise SnapshotError(f"Snapshot not found: {path}")

        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Failed to read snapshot {path}: {e}") from e

        document = self.parse(data, default_title=default_title or path.stem)
        if title:
            document.title = title
        return document

    def parse(self, data: Any, default_title: str = "doc") -> Document:
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a JSON object")

        root_data = data.get('root', data if 'type' in data else None)
        if root_data is not None and not isinstance(root_data, dict):
            raise SnapshotError("Snapshot root must be a block object")

        media = data.get('media') or {}
        root = Block.from_dict(root_data) if root_data is not None else None
        if root is not None:
            self._bind(root, media)

        document = Document(
            root=root,
            title=data.get('title') or default_title,
            language=data.get('language') or 'en'
        )
        logger.info("Snapshot loaded: title={}, blocks={}", document.title,
                    sum(1 for _ in root.walk()) if root else 0)
        return document

    def _bind(self, root: Block, media: Dict[str, str]):
        for block in root.walk():
            if block.type == BlockType.IMAGE:
                block.image_fetcher = self._image_fetcher(media)
            elif block.type == BlockType.FILE:
                block.file_fetcher = self._file_fetcher(media)
            elif block.type == BlockType.WHITEBOARD:
                block.bitmap_fetcher = self._bitmap_fetcher(block)

    def _image_fetcher(self, media: Dict[str, str]):
        async def fetch(token: str) -> Optional[ImageSources]:
            src = media.get(token)
            if not src:
                logger.debug("No media source for image token={}", token)
                return None
            return ImageSources(src=src, origin_src=src)
        return fetch

    def _file_fetcher(self, media: Dict[str, str]):
        async def fetch(token: str, cancel: Optional[CancelToken] = None) -> bytes:
            src = media.get(token)
            if not src:
                raise LookupError(f"No media source for file token={token}")
            return await self.reader.read(src, cancel)
        return fetch

    @staticmethod
    def _bitmap_fetcher(block: Block):
        async def fetch() -> Optional[Bitmap]:
            bitmap = (block.snapshot.get('whiteboard') or {}).get('bitmap')
            if not bitmap:
                return None
            try:
                return Bitmap(
                    width=int(bitmap['width']),
                    height=int(bitmap['height']),
                    pixels=base64.b64decode(bitmap['pixels'])
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Invalid whiteboard bitmap: {}", e)
                return None
        return fetch


def load_snapshot(path: Path, reader: SourceReader, title: Optional[str] = None) -> Document:
    """Shortcut for ``SnapshotClient(reader).load(path, title)``."""
    return SnapshotClient(reader).load(path, title=title)
