"""Assemble Markdown exports: fetch referenced media and package a zip."""

import asyncio
import io
import zipfile
from typing import Callable, Dict, List, Optional

from loguru import logger

from lark_md.converter import MarkdownConverter
from lark_md.document import Document, ExportResult, MediaFailure
from lark_md.errors import DocumentNotReadyError, DownloadCancelled, UnsupportedDocumentError
from lark_md.media import CancelToken, FilenameRegistry, SourceReader
from lark_md.mdast import Image, Link
from lark_md.transformer import TransformResult, Transformer

ProgressCallback = Callable[[int, int], None]


class ArchiveAssembler:
    """Turn a transform result into a ``.md`` file or a ``.zip`` archive.

    Media is fetched concurrently in batches of ``concurrency``. Every fetch
    settles on its own: a failure is recorded in ``ExportResult.failures``
    and leaves the node's url empty, a cancelled file download is recorded in
    ``ExportResult.cancelled``. Neither stops the export.
    """

    def __init__(self, reader: SourceReader, concurrency: int = 5,
                 images_dir: str = "images", files_dir: str = "files",
                 on_progress: Optional[ProgressCallback] = None,
                 converter: Optional[MarkdownConverter] = None):
        self.reader = reader
        self.concurrency = max(1, concurrency)
        self.images_dir = images_dir.strip('/')
        self.files_dir = files_dir.strip('/')
        self.on_progress = on_progress
        self.converter = converter or MarkdownConverter()
        self._cancel_tokens: Dict[int, CancelToken] = {}

    def cancel(self, link: Link) -> bool:
        """Cancel the download of one file link; other downloads continue."""
        token = self._cancel_tokens.get(id(link))
        if token is None:
            return False
        token.cancel()
        logger.info("Cancelling download: {}", link.data.name if link.data else link.url)
        return True

    async def assemble(self, title: str, result: TransformResult) -> ExportResult:
        media_count = len(result.images) + len(result.files)
        total = media_count + 1
        done = 0

        def advance():
            nonlocal done
            done += 1
            if self.on_progress is not None:
                self.on_progress(done, total)

        if media_count == 0:
            markdown = self.converter.ast_to_markdown(result.root)
            advance()
            logger.info("Exported {} without media", title)
            return ExportResult(filename=f"{title}.md", content=markdown.encode('utf-8'), markdown=markdown)

        # Names are reserved in document order before any fetch starts.
        registry = FilenameRegistry()
        jobs = []
        for image in result.images:
            path = registry.register(f"{self.images_dir}/{image.data.name}" if image.data else self.images_dir)
            jobs.append((image, path))
        for link in result.files:
            path = registry.register(f"{self.files_dir}/{link.data.name}" if link.data else self.files_dir)
            self._cancel_tokens[id(link)] = CancelToken()
            jobs.append((link, path))

        entries: Dict[str, bytes] = {}
        failures: List[MediaFailure] = []
        cancelled: List[str] = []

        async def run(node, path: str):
            kind = 'image' if isinstance(node, Image) else 'file'
            name = node.data.name if node.data else path
            try:
                if isinstance(node, Image):
                    content = await self._fetch_image(node)
                else:
                    content = await node.data.fetch(self._cancel_tokens[id(node)])
                entries[path] = content
                node.resolve(path)
                logger.debug("Fetched {} {} ({} bytes)", kind, path, len(content))
            except DownloadCancelled:
                cancelled.append(name)
                logger.info("Download cancelled: {}", name)
            except Exception as e:
                failures.append(MediaFailure(kind=kind, name=name, error=str(e) or type(e).__name__))
                logger.warning("Failed to download {}: {}", name, e)
            finally:
                advance()

        try:
            for start in range(0, len(jobs), self.concurrency):
                batch = jobs[start:start + self.concurrency]
                await asyncio.gather(*(run(node, path) for node, path in batch))
        finally:
            self._cancel_tokens.clear()

        markdown = self.converter.ast_to_markdown(result.root)
        archive = self._build_zip(title, markdown, jobs, entries)
        advance()

        logger.info("Exported {}: {} media fetched, {} failed, {} cancelled",
                    title, len(entries), len(failures), len(cancelled))
        return ExportResult(
            filename=f"{title}.zip",
            content=archive,
            markdown=markdown,
            failures=failures,
            cancelled=cancelled,
            media_count=len(entries)
        )

    async def _fetch_image(self, image: Image) -> bytes:
        if image.data is None:
            raise LookupError("Image has no source")

        sources = await image.data.fetch_sources()
        if sources is None:
            raise LookupError(f"No sources for image {image.data.name}")
        if sources.content is not None:
            return sources.content
        return await self.reader.read(sources.src or sources.origin_src)

    @staticmethod
    def _build_zip(title: str, markdown: str, jobs, entries: Dict[str, bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(f"{title}.md", markdown)
            for _, path in jobs:
                if path in entries:
                    archive.writestr(path, entries[path])
        return buffer.getvalue()


async def export_document(document: Document, reader: SourceReader,
                          whiteboard: bool = False, **assembler_options) -> ExportResult:
    """Check the document can be exported, transform it and assemble the result."""
    if not document.is_supported():
        raise UnsupportedDocumentError("This is not a docx page and cannot be exported as Markdown")
    if not document.is_ready():
        raise DocumentNotReadyError(
            f"Part of the content is still loading ({len(document.pending_blocks())} pending blocks)"
        )

    result = document.into_markdown_ast(Transformer(whiteboard=whiteboard))
    logger.info("Converted {}: {} images, {} files", document.title, len(result.images), len(result.files))

    assembler = ArchiveAssembler(reader, **assembler_options)
    return await assembler.assemble(document.title, result)
