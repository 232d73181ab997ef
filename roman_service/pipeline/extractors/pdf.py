from __future__ import annotations

import logging
from typing import Any

import pymupdf
from pypdf import PdfReader

from roman_service.config import ROMAN_JPEG_QUALITY, ROMAN_RENDER_SCALE
from roman_service.pipeline.errors import ExtractionError
from roman_service.pipeline.extractors.base import Extractor, clean_text, preview_of
from roman_service.pipeline.types import (
    DocKind,
    ImagePart,
    ModeFlags,
    SourceDocument,
    TextPart,
    UnitLayout,
    WorkUnit,
)

logger = logging.getLogger(__name__)


class PdfExtractor(Extractor):
    """Pages of a PDF as work units.

    Text mode reads the page's text layer with pypdf; OCR mode rasterizes the
    page with PyMuPDF and sends the JPEG for recognition. Unit index ``i`` is
    page ``i + 1``.
    """

    segment_suffix = "\n\n"

    def __init__(
        self,
        *,
        flags: ModeFlags,
        render_scale: float = ROMAN_RENDER_SCALE,
        jpeg_quality: int = ROMAN_JPEG_QUALITY,
    ) -> None:
        self._flags = flags
        self._scale = float(render_scale)
        self._quality = int(jpeg_quality)
        self._reader: PdfReader | None = None
        self._doc: Any = None
        self._page_count: int | None = None

    def can_handle(self, source: SourceDocument) -> bool:
        return source.kind is DocKind.PAGED

    def page_count(self, source: SourceDocument) -> int:
        # Discovered lazily on first access
        if self._page_count is None:
            try:
                self._page_count = len(self._text_reader(source).pages)
            except Exception as e:
                raise ExtractionError(0, f"cannot open PDF: {type(e).__name__}: {e}") from e
        return self._page_count

    def layout(self, source: SourceDocument) -> UnitLayout:
        pages = self.page_count(source)
        start = self._flags.range_start or 1
        end = min(self._flags.range_end or pages, pages)
        if start > end:
            raise ExtractionError(
                start - 1, f"page range {start}-{self._flags.range_end} outside document of {pages} pages"
            )
        return UnitLayout(total=end, stride=1, origin=start - 1)

    def materialize(self, source: SourceDocument, index: int) -> WorkUnit | None:
        page_no = index + 1
        if index < 0 or page_no > self.page_count(source):
            raise ExtractionError(index, f"page {page_no} does not exist")
        if self._flags.use_ocr:
            return self._render_page(source, index)
        return self._page_text(source, index)

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None
        self._reader = None

    def _text_reader(self, source: SourceDocument) -> PdfReader:
        if self._reader is None:
            self._reader = PdfReader(source.path)
        return self._reader

    def _page_text(self, source: SourceDocument, index: int) -> WorkUnit | None:
        try:
            text = self._text_reader(source).pages[index].extract_text() or ""
        except Exception as e:
            raise ExtractionError(index, f"text layer unreadable: {type(e).__name__}: {e}") from e
        text = clean_text(text)
        if not text.strip():
            logger.debug("Page %d has no text layer; skipping", index + 1)
            return None
        return WorkUnit(index=index, payload=TextPart(text=text), preview=preview_of(text))

    def _render_page(self, source: SourceDocument, index: int) -> WorkUnit:
        try:
            if self._doc is None:
                self._doc = pymupdf.open(source.path)
            page = self._doc.load_page(index)
            pix = page.get_pixmap(matrix=pymupdf.Matrix(self._scale, self._scale))
            data = pix.tobytes("jpeg", jpg_quality=self._quality)
        except Exception as e:
            raise ExtractionError(index, f"render failed: {type(e).__name__}: {e}") from e
        return WorkUnit(
            index=index,
            payload=ImagePart(data=data, media_type="image/jpeg"),
            preview=f"Page {index + 1} (Scanned)",
        )
