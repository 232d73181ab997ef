from __future__ import annotations

import os
from dataclasses import dataclass, replace

from roman_service.config import ROMAN_CHUNK_SIZE_BYTES
from roman_service.pipeline.types import ModeFlags

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10


def _get_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _get_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    return int(v)


def _get_opt_int(name: str) -> int | None:
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    return int(v)


@dataclass(frozen=True)
class PipelineConfig:
    # Batching
    batch_size: int

    # Modality
    use_ocr: bool

    # Page bounds (paged documents only), 1-based inclusive
    range_start: int | None
    range_end: int | None

    # Text mode unit size; a system parameter, not a user knob
    chunk_size_bytes: int = ROMAN_CHUNK_SIZE_BYTES

    @classmethod
    def from_env(cls) -> PipelineConfig:
        return cls(
            batch_size=_get_int("ROMAN_BATCH_SIZE", 1),
            use_ocr=_get_bool("ROMAN_USE_OCR", False),
            range_start=_get_opt_int("ROMAN_RANGE_START"),
            range_end=_get_opt_int("ROMAN_RANGE_END"),
        )

    @property
    def flags(self) -> ModeFlags:
        return ModeFlags(
            use_ocr=self.use_ocr,
            range_start=self.range_start,
            range_end=self.range_end,
        )

    def with_flags(self, flags: ModeFlags) -> PipelineConfig:
        return replace(
            self,
            use_ocr=flags.use_ocr,
            range_start=flags.range_start,
            range_end=flags.range_end,
        )

    def validate(self) -> None:
        if not MIN_BATCH_SIZE <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"ROMAN_BATCH_SIZE must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}"
            )
        if self.chunk_size_bytes < 1:
            raise ValueError("chunk_size_bytes must be >= 1")
        for k, v in (("ROMAN_RANGE_START", self.range_start), ("ROMAN_RANGE_END", self.range_end)):
            if v is not None and v < 1:
                raise ValueError(f"{k} must be >= 1")
        if (
            self.range_start is not None
            and self.range_end is not None
            and self.range_start > self.range_end
        ):
            raise ValueError("ROMAN_RANGE_START must be <= ROMAN_RANGE_END")
