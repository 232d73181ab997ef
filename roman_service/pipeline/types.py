from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class DocKind(str, Enum):
    TEXT = "text"
    PAGED = "paged"
    IMAGE = "image"


class RunState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class SourceDocument:
    path: Path
    name: str
    size: int
    kind: DocKind
    media_type: str | None
    content_hash: str  # sha256 hex of the file bytes


# Unit payloads: a tagged union the dispatcher turns into request parts.
@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    data: bytes
    media_type: str


UnitPayload = TextPart | ImagePart


@dataclass(frozen=True)
class WorkUnit:
    index: int  # page index (0-based) or byte offset
    payload: UnitPayload
    preview: str  # display only; never sent to the model


@dataclass(frozen=True)
class ModeFlags:
    use_ocr: bool = False
    range_start: int | None = None  # 1-based page bounds, inclusive
    range_end: int | None = None


@dataclass(frozen=True)
class UnitLayout:
    """Cursor space of a source: units start at ``origin`` every ``stride``."""

    total: int
    stride: int
    origin: int = 0


@dataclass(frozen=True)
class BatchRange:
    start: int
    end: int  # inclusive; index of the last unit in the batch
    stride: int
    total: int

    def indices(self) -> range:
        return range(self.start, self.end + 1, self.stride)

    @property
    def next_cursor(self) -> int:
        return min(self.end + self.stride, self.total)

    def __len__(self) -> int:
        return len(self.indices())


@dataclass(frozen=True)
class ChunkPreview:
    original: str
    converted: str


@dataclass(frozen=True)
class ProgressState:
    total_units: int
    cursor: int
    accumulated: tuple[str, ...]
    elapsed: float
    estimated_time_remaining: float | None
    processed_units: int
    processed_bytes: int
    chunks_processed: int


@dataclass(frozen=True)
class RecoverySnapshot:
    file_name: str
    file_size: int
    cursor: int
    accumulated: tuple[str, ...]
    total_units: int
    flags: ModeFlags
    content_hash: str | None = None  # sha256 hex; absent in older snapshots


class CancellationToken:
    """Pause/abort flags owned by one controller run.

    Checked at every suspension point of the run; a fresh token is issued
    for each run so a stale loop can never observe a later run's flags.
    """

    def __init__(self) -> None:
        self._paused = False
        self._aborted = False

    def pause(self) -> None:
        self._paused = True

    def abort(self) -> None:
        self._aborted = True

    def is_paused(self) -> bool:
        return self._paused

    def is_aborted(self) -> bool:
        return self._aborted

    @property
    def stopped(self) -> bool:
        return self._paused or self._aborted
