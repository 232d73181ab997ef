from __future__ import annotations

from roman_service.pipeline.errors import ExtractionError
from roman_service.pipeline.extractors.base import Extractor
from roman_service.pipeline.types import DocKind, ImagePart, SourceDocument, UnitLayout, WorkUnit


class ImageExtractor(Extractor):
    """A single image is the one and only unit of its document."""

    def can_handle(self, source: SourceDocument) -> bool:
        return source.kind is DocKind.IMAGE

    def layout(self, source: SourceDocument) -> UnitLayout:
        return UnitLayout(total=1, stride=1)

    def materialize(self, source: SourceDocument, index: int) -> WorkUnit | None:
        if index != 0:
            raise ExtractionError(index, "image documents have a single unit")
        try:
            data = source.path.read_bytes()
        except OSError as e:
            raise ExtractionError(index, f"{type(e).__name__}: {e}") from e
        if not data:
            raise ExtractionError(index, "image file is empty")
        mime = source.media_type or "image/png"
        return WorkUnit(
            index=0,
            payload=ImagePart(data=data, media_type=mime),
            preview="Image Content Extraction...",
        )
