"""Pydantic schemas for files exchanged with users."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

# -- Recovery snapshot --------------------------------------------------------


class ResumeMetadata(BaseModel):
    """Field-keyed recovery point, hand-editable as pretty-printed JSON."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_name: str = Field(..., alias="fileName", min_length=1)
    file_size: int = Field(..., alias="fileSize", ge=0)
    last_processed_index: int = Field(
        ..., alias="lastProcessedIndex", ge=0, description="Page number for PDF, offset for text"
    )
    accumulated_content: list[str] = Field(..., alias="accumulatedContent")
    use_ocr: bool = Field(False, alias="useOCR")
    total_items: int = Field(..., alias="totalItems", ge=0)
    range_start: int | None = Field(None, alias="rangeStart", ge=1)
    range_end: int | None = Field(None, alias="rangeEnd", ge=1)
    content_hash: str | None = Field(
        None, alias="contentHash", pattern=r"^[0-9a-f]{64}$", description="sha256 of the source file"
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> ResumeMetadata:
        if self.last_processed_index > self.total_items:
            raise ValueError("lastProcessedIndex exceeds totalItems")
        if (
            self.range_start is not None
            and self.range_end is not None
            and self.range_start > self.range_end
        ):
            raise ValueError("rangeStart must be <= rangeEnd")
        return self
