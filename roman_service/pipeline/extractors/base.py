from __future__ import annotations

from abc import ABC, abstractmethod

from roman_service.config import ROMAN_PREVIEW_CHARS
from roman_service.pipeline.types import SourceDocument, UnitLayout, WorkUnit


class Extractor(ABC):
    # Appended to a committed batch result of this document kind
    segment_suffix: str = ""

    @abstractmethod
    def can_handle(self, source: SourceDocument) -> bool: ...

    @abstractmethod
    def layout(self, source: SourceDocument) -> UnitLayout: ...

    @abstractmethod
    def materialize(self, source: SourceDocument, index: int) -> WorkUnit | None:
        """Build the unit at ``index``; ``None`` when its text is blank."""

    def close(self) -> None:
        return None


def clean_text(text: str) -> str:
    if not text:
        return ""
    return text.replace("\x00", "")


def preview_of(text: str, limit: int = ROMAN_PREVIEW_CHARS) -> str:
    return text[:limit]
