from __future__ import annotations

from typing import BinaryIO

from roman_service.config import ROMAN_CHUNK_SIZE_BYTES
from roman_service.pipeline.errors import ExtractionError
from roman_service.pipeline.extractors.base import Extractor, clean_text, preview_of
from roman_service.pipeline.types import DocKind, SourceDocument, TextPart, UnitLayout, WorkUnit

_MAX_CONTINUATION = 3  # a UTF-8 character is at most 4 bytes


def _is_continuation(b: int) -> bool:
    return (b & 0xC0) == 0x80


def read_aligned(f: BinaryIO, start: int, end: int) -> bytes:
    """Read bytes ``[start, end)`` moved onto UTF-8 character boundaries.

    A character straddling either edge belongs to the slice it starts in, so
    consecutive slices decode to exactly the original text.
    """
    f.seek(start)
    buf = f.read(end - start + _MAX_CONTINUATION)
    skip = 0
    while skip < min(_MAX_CONTINUATION, len(buf)) and _is_continuation(buf[skip]):
        skip += 1
    cut = min(end - start, len(buf))
    limit = min(cut + _MAX_CONTINUATION, len(buf))
    while cut < limit and _is_continuation(buf[cut]):
        cut += 1
    return buf[skip:cut]


class TextExtractor(Extractor):
    segment_suffix = "\n"

    def __init__(self, *, chunk_size: int = ROMAN_CHUNK_SIZE_BYTES) -> None:
        self._chunk = max(1, int(chunk_size))

    def can_handle(self, source: SourceDocument) -> bool:
        return source.kind is DocKind.TEXT

    def layout(self, source: SourceDocument) -> UnitLayout:
        # Units are addressed by byte offset
        return UnitLayout(total=source.size, stride=self._chunk)

    def materialize(self, source: SourceDocument, index: int) -> WorkUnit | None:
        if index < 0 or index >= source.size:
            raise ExtractionError(index, f"offset outside file of {source.size} bytes")
        end = min(index + self._chunk, source.size)
        try:
            with source.path.open("rb") as f:
                data = read_aligned(f, index, end)
        except OSError as e:
            raise ExtractionError(index, f"{type(e).__name__}: {e}") from e

        try:
            decoded = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionError(index, f"not valid UTF-8 text: {e.reason} at byte {index + e.start}") from e

        text = clean_text(decoded)
        if not text.strip():
            return None
        return WorkUnit(index=index, payload=TextPart(text=text), preview=preview_of(text))
