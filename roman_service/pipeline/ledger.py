from __future__ import annotations

import logging
import math
from collections import deque

from roman_service.config import ROMAN_MAX_PREVIEW_CHUNKS
from roman_service.pipeline.types import (
    ChunkPreview,
    ProgressState,
    RecoverySnapshot,
    UnitLayout,
)

logger = logging.getLogger(__name__)


def estimate_remaining(fraction: float, elapsed: float) -> float | None:
    if fraction <= 0:
        return None
    return (elapsed / fraction) - elapsed


class ProgressLedger:
    """Committed progress of one source document.

    Holds the cursor and the full accumulated output (unbounded, for export)
    next to a bounded preview ring (display only). Mutated only through
    ``commit`` and ``advance``; both keep the cursor non-decreasing.
    """

    def __init__(
        self,
        *,
        total_bytes: int = 0,
        preview_limit: int = ROMAN_MAX_PREVIEW_CHUNKS,
    ) -> None:
        self._total_bytes = total_bytes
        self._total_units = 0
        self._origin = 0
        self._cursor = 0
        self._accumulated: list[str] = []
        self._preview: deque[ChunkPreview] = deque(maxlen=max(1, preview_limit))
        self._elapsed = 0.0
        self._eta: float | None = None
        self._processed_units = 0
        self._processed_bytes = 0
        self._chunks_processed = 0

    @classmethod
    def from_snapshot(
        cls,
        snapshot: RecoverySnapshot,
        *,
        preview_limit: int = ROMAN_MAX_PREVIEW_CHUNKS,
    ) -> ProgressLedger:
        ledger = cls(total_bytes=snapshot.file_size, preview_limit=preview_limit)
        ledger._total_units = snapshot.total_units
        ledger._cursor = snapshot.cursor
        ledger._accumulated = list(snapshot.accumulated)
        ledger._chunks_processed = len(snapshot.accumulated)
        if snapshot.total_units > 0:
            fraction = min(snapshot.cursor / snapshot.total_units, 1.0)
            ledger._processed_units = math.floor(fraction * snapshot.total_units)
            ledger._processed_bytes = math.floor(fraction * snapshot.file_size)
        return ledger

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def total_units(self) -> int:
        return self._total_units

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def accumulated(self) -> tuple[str, ...]:
        return tuple(self._accumulated)

    @property
    def preview(self) -> list[ChunkPreview]:
        return list(self._preview)

    def has_progress(self) -> bool:
        return self._cursor > self._origin or bool(self._accumulated)

    def bind(self, layout: UnitLayout) -> None:
        """Adopt a source's unit layout at the start of a run."""
        self._total_units = layout.total
        self._origin = layout.origin
        if self._cursor < layout.origin:
            self._cursor = layout.origin

    def fraction_at(self, cursor: int) -> float:
        span = self._total_units - self._origin
        if span <= 0:
            return 1.0
        return min(max((cursor - self._origin) / span, 0.0), 1.0)

    def commit(
        self,
        fraction: float,
        elapsed: float,
        batch_result: str,
        *,
        cursor: int,
        original: str = "",
        suffix: str = "",
    ) -> ProgressState:
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"fraction must be within [0, 1], got {fraction}")
        self._move_cursor(cursor)
        self._record(fraction, elapsed)
        self._accumulated.append(batch_result + suffix)
        self._preview.append(ChunkPreview(original=original, converted=batch_result))
        self._chunks_processed += 1
        return self.state()

    def advance(self, cursor: int, elapsed: float | None = None) -> ProgressState:
        """Move past units that produced nothing to dispatch."""
        self._move_cursor(cursor)
        self._record(self.fraction_at(cursor), self._elapsed if elapsed is None else elapsed)
        return self.state()

    def mark_complete(self) -> None:
        self._eta = 0.0

    def export_text(self) -> str:
        return "".join(self._accumulated)

    def state(self) -> ProgressState:
        return ProgressState(
            total_units=self._total_units,
            cursor=self._cursor,
            accumulated=tuple(self._accumulated),
            elapsed=self._elapsed,
            estimated_time_remaining=self._eta,
            processed_units=self._processed_units,
            processed_bytes=self._processed_bytes,
            chunks_processed=self._chunks_processed,
        )

    def _record(self, fraction: float, elapsed: float) -> None:
        span = self._total_units - self._origin
        self._processed_units = math.floor(fraction * span)
        self._processed_bytes = math.floor(fraction * self._total_bytes)
        self._elapsed = elapsed
        self._eta = estimate_remaining(fraction, elapsed)

    def _move_cursor(self, cursor: int) -> None:
        if cursor < self._cursor:
            raise ValueError(f"cursor may not move backwards ({self._cursor} -> {cursor})")
        if self._total_units and cursor > self._total_units:
            raise ValueError(f"cursor {cursor} beyond total {self._total_units}")
        self._cursor = cursor
