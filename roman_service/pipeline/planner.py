from __future__ import annotations

import hashlib
import mimetypes
from pathlib import Path

from roman_service.pipeline.errors import UnsupportedInputError
from roman_service.pipeline.types import BatchRange, DocKind, SourceDocument

_SUPPORTED_EXTS: dict[str, DocKind] = {
    ".pdf": DocKind.PAGED,
    ".txt": DocKind.TEXT,
    ".md": DocKind.TEXT,
    ".png": DocKind.IMAGE,
    ".jpg": DocKind.IMAGE,
    ".jpeg": DocKind.IMAGE,
    ".webp": DocKind.IMAGE,
    ".gif": DocKind.IMAGE,
    ".tiff": DocKind.IMAGE,
    ".heic": DocKind.IMAGE,
}

_HASH_BLOCK = 1024 * 1024


def derive_doc_kind(name: str, media_type: str | None = None) -> DocKind | None:
    if media_type == "application/pdf":
        return DocKind.PAGED
    if media_type == "text/plain":
        return DocKind.TEXT
    if media_type and media_type.startswith("image/"):
        return DocKind.IMAGE
    return _SUPPORTED_EXTS.get(Path(name).suffix.lower())


def compute_content_hash(path: Path) -> str:
    # Streamed so very large inputs are never held in memory
    h = hashlib.sha256()
    with path.open("rb") as f:
        while block := f.read(_HASH_BLOCK):
            h.update(block)
    return h.hexdigest()


def load_source(path: str | Path, *, media_type: str | None = None) -> SourceDocument:
    """Identify a file and build its immutable SourceDocument.

    Raises UnsupportedInputError before any processing when the kind is not
    recognized.
    """
    p = Path(path)
    if media_type is None:
        media_type, _ = mimetypes.guess_type(p.name)
    kind = derive_doc_kind(p.name, media_type)
    if kind is None:
        raise UnsupportedInputError(p.name)
    return SourceDocument(
        path=p,
        name=p.name,
        size=p.stat().st_size,
        kind=kind,
        media_type=media_type,
        content_hash=compute_content_hash(p),
    )


def next_range(cursor: int, total: int, batch_size: int, *, stride: int = 1) -> BatchRange | None:
    """Next batch of unit indices starting at ``cursor``.

    Pure. Holds at most ``batch_size`` units, never reaches past ``total``
    and is ``None`` only once ``cursor >= total``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if stride < 1:
        raise ValueError("stride must be >= 1")
    if cursor < 0:
        raise ValueError("cursor must be >= 0")
    if cursor >= total:
        return None
    remaining = -(-(total - cursor) // stride)
    count = min(batch_size, remaining)
    return BatchRange(start=cursor, end=cursor + (count - 1) * stride, stride=stride, total=total)


def result_filename(source: SourceDocument) -> str:
    return f"Roman_{Path(source.name).stem}.txt"


def snapshot_filename(source: SourceDocument) -> str:
    return f"{source.name}_meta.txt"
