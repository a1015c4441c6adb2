import asyncio
import logging
import os
import threading
from typing import List, Optional

import fitz

from decksync.alignment.dto import Deck, Page
from decksync.alignment.errors import ExtractionError

logger = logging.getLogger(__name__)


class _PdfPageRenderer:
    """
    Owns one open PDF for the duration of a rasterization call.

    ``render`` and ``close`` share a lock so the document is never closed
    underneath a page that is still being rendered in a worker thread.
    """

    def __init__(self, pdf_path: str, render_scale: float, jpeg_quality: int):
        self.pdf_path = pdf_path
        self.source = os.path.basename(pdf_path)
        self.matrix = fitz.Matrix(render_scale, render_scale)
        self.jpeg_quality = jpeg_quality
        self._doc: Optional[fitz.Document] = None
        self._lock = threading.Lock()

    def open(self) -> int:
        with self._lock:
            try:
                self._doc = fitz.open(self.pdf_path)
            except Exception as e:
                raise ExtractionError(self.source, f"cannot open document: {e}") from e
            if self._doc.needs_pass:
                raise ExtractionError(self.source, "document is password protected")
            if self._doc.page_count == 0:
                raise ExtractionError(self.source, "document has no pages")
            return self._doc.page_count

    def render(self, index: int) -> Page:
        """Render 1-based page ``index`` to JPEG bytes."""
        with self._lock:
            if self._doc is None:
                raise ExtractionError(self.source, "document is closed", page=index)
            try:
                page = self._doc.load_page(index - 1)
                pix = page.get_pixmap(matrix=self.matrix, alpha=False)
                image = pix.tobytes("jpg", jpg_quality=self.jpeg_quality)
            except Exception as e:
                raise ExtractionError(self.source, str(e), page=index) from e
            return Page(index=index, image=image)

    def close(self) -> None:
        with self._lock:
            if self._doc is not None:
                self._doc.close()
                self._doc = None


async def rasterize_deck(
    pdf_path: str,
    deck_id: int,
    render_scale: float = 1.0,
    jpeg_quality: int = 80,
    job_id: Optional[str] = None,
) -> Deck:
    """
    Render every page of a PDF, in document order, into a :class:`Deck`.

    Pages are rendered one at a time in a worker thread. Any page failure
    aborts the whole deck with :class:`ExtractionError`.
    """
    renderer = _PdfPageRenderer(pdf_path, render_scale, jpeg_quality)
    try:
        page_count = await asyncio.to_thread(renderer.open)
        logger.info(
            "[Job %s] Rasterizing deck %d (%s): %d pages",
            job_id,
            deck_id,
            renderer.source,
            page_count,
        )

        pages: List[Page] = []
        for index in range(1, page_count + 1):
            pages.append(await asyncio.to_thread(renderer.render, index))
            logger.debug(
                "[Job %s] Deck %d page %d/%d rendered",
                job_id,
                deck_id,
                index,
                page_count,
            )
    finally:
        # A cancelled render may still hold the lock; wait for it off the loop
        await asyncio.to_thread(renderer.close)

    return Deck(deck_id=deck_id, source=renderer.source, pages=tuple(pages))
