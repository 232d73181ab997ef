from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from roman_service.models import ResumeMetadata
from roman_service.pipeline.errors import SnapshotParseError
from roman_service.pipeline.types import (
    ModeFlags,
    ProgressState,
    RecoverySnapshot,
    SourceDocument,
)
from roman_service.storage import read_text, write_text

logger = logging.getLogger(__name__)


def build_snapshot(progress: ProgressState, source: SourceDocument, flags: ModeFlags) -> RecoverySnapshot:
    return RecoverySnapshot(
        file_name=source.name,
        file_size=source.size,
        cursor=progress.cursor,
        accumulated=progress.accumulated,
        total_units=progress.total_units,
        flags=flags,
        content_hash=source.content_hash,
    )


def dump_snapshot(snapshot: RecoverySnapshot) -> str:
    meta = ResumeMetadata(
        file_name=snapshot.file_name,
        file_size=snapshot.file_size,
        last_processed_index=snapshot.cursor,
        accumulated_content=list(snapshot.accumulated),
        use_ocr=snapshot.flags.use_ocr,
        total_items=snapshot.total_units,
        range_start=snapshot.flags.range_start,
        range_end=snapshot.flags.range_end,
        content_hash=snapshot.content_hash,
    )
    return meta.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def serialize(progress: ProgressState, source: SourceDocument, flags: ModeFlags) -> str:
    return dump_snapshot(build_snapshot(progress, source, flags))


def deserialize(blob: str | bytes) -> RecoverySnapshot:
    """Parse and validate a snapshot blob.

    Raises:
        SnapshotParseError: If the blob is not a well-formed snapshot.
    """
    try:
        meta = ResumeMetadata.model_validate_json(blob)
    except ValidationError as e:
        raise SnapshotParseError(f"{e.error_count()} invalid field(s): {_first_error(e)}") from e
    return RecoverySnapshot(
        file_name=meta.file_name,
        file_size=meta.file_size,
        cursor=meta.last_processed_index,
        accumulated=tuple(meta.accumulated_content),
        total_units=meta.total_items,
        flags=ModeFlags(
            use_ocr=meta.use_ocr,
            range_start=meta.range_start,
            range_end=meta.range_end,
        ),
        content_hash=meta.content_hash,
    )


def save_snapshot(blob: str, location: str | Path) -> None:
    write_text(location, blob)
    logger.info("Recovery snapshot written to %s", location)


def load_snapshot(location: str | Path) -> RecoverySnapshot:
    try:
        blob = read_text(location)
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotParseError(f"cannot read {location}: {e}") from e
    snapshot = deserialize(blob)
    logger.info("Recovery snapshot read from %s (cursor=%d)", location, snapshot.cursor)
    return snapshot


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
    return f"{loc}: {err.get('msg', '')}"
