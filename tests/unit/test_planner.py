"""Unit tests for source identification and batch planning (pure functions)."""

from __future__ import annotations

import hashlib

import pytest

from roman_service.pipeline.errors import UnsupportedInputError
from roman_service.pipeline.planner import (
    derive_doc_kind,
    load_source,
    next_range,
    result_filename,
    snapshot_filename,
)
from roman_service.pipeline.types import DocKind


class TestDeriveDocKind:
    def test_by_extension(self):
        assert derive_doc_kind("book.pdf") is DocKind.PAGED
        assert derive_doc_kind("book.TXT") is DocKind.TEXT
        assert derive_doc_kind("scan.jpeg") is DocKind.IMAGE

    def test_media_type_wins_over_extension(self):
        assert derive_doc_kind("upload.bin", "application/pdf") is DocKind.PAGED
        assert derive_doc_kind("upload.bin", "image/webp") is DocKind.IMAGE
        assert derive_doc_kind("upload.bin", "text/plain") is DocKind.TEXT

    def test_unknown(self):
        assert derive_doc_kind("book.epub") is None
        assert derive_doc_kind("noext") is None


class TestLoadSource:
    def test_identity(self, write_file):
        path = write_file("kitab.txt", "سلام دنیا")
        src = load_source(path)
        assert src.name == "kitab.txt"
        assert src.kind is DocKind.TEXT
        assert src.size == len("سلام دنیا".encode())
        assert src.content_hash == hashlib.sha256(path.read_bytes()).hexdigest()

    def test_unsupported_raises_before_processing(self, write_file):
        path = write_file("book.epub", b"PK\x03\x04")
        with pytest.raises(UnsupportedInputError, match="Supported formats"):
            load_source(path)

    def test_explicit_media_type(self, write_file):
        path = write_file("upload.bin", b"\x89PNG\r\n")
        src = load_source(path, media_type="image/png")
        assert src.kind is DocKind.IMAGE
        assert src.media_type == "image/png"


class TestNextRange:
    @pytest.mark.parametrize("total", [0, 1, 2, 7, 10, 23])
    @pytest.mark.parametrize("batch", [1, 2, 3, 10])
    def test_covers_every_index_once_in_order(self, total, batch):
        seen: list[int] = []
        cursor = 0
        while (rng := next_range(cursor, total, batch)) is not None:
            assert 1 <= len(rng) <= batch
            assert rng.end < total
            seen.extend(rng.indices())
            cursor = rng.next_cursor
        assert seen == list(range(total))
        assert cursor == total

    def test_none_only_when_exhausted(self):
        assert next_range(5, 5, 3) is None
        assert next_range(6, 5, 3) is None
        assert next_range(4, 5, 3) is not None

    def test_clipped_to_remaining(self):
        rng = next_range(6, 7, 2)
        assert list(rng.indices()) == [6]
        assert rng.next_cursor == 7

    def test_byte_stride(self):
        # 100 KB text at 32 KB per unit
        total, stride = 102_400, 32_768
        cursors = []
        cursor = 0
        while (rng := next_range(cursor, total, 1, stride=stride)) is not None:
            cursor = rng.next_cursor
            cursors.append(cursor)
        assert cursors == [32_768, 65_536, 98_304, 102_400]

    def test_byte_stride_batched(self):
        rng = next_range(0, 102_400, 3, stride=32_768)
        assert list(rng.indices()) == [0, 32_768, 65_536]
        assert rng.next_cursor == 98_304

    @pytest.mark.parametrize(
        "cursor,total,batch,stride",
        [(0, 10, 0, 1), (0, 10, 1, 0), (-1, 10, 1, 1)],
    )
    def test_invalid_arguments(self, cursor, total, batch, stride):
        with pytest.raises(ValueError):
            next_range(cursor, total, batch, stride=stride)


class TestFilenames:
    def test_result_and_snapshot_names(self, write_file):
        src = load_source(write_file("novel.txt", "abc"))
        assert result_filename(src) == "Roman_novel.txt"
        assert snapshot_filename(src) == "novel.txt_meta.txt"
