"""Unit tests for unit extractors with real file bytes.

PDF fixtures are generated with fpdf2; OCR mode renders them with PyMuPDF.
"""

from __future__ import annotations

import pytest

from roman_service.pipeline.errors import ExtractionError
from roman_service.pipeline.extractors.image import ImageExtractor
from roman_service.pipeline.extractors.pdf import PdfExtractor
from roman_service.pipeline.extractors.text import TextExtractor
from roman_service.pipeline.planner import load_source
from roman_service.pipeline.types import ImagePart, ModeFlags, TextPart

# ===========================================================================
# TextExtractor
# ===========================================================================


class TestTextExtractor:
    def test_layout_is_byte_offsets(self, write_file):
        src = load_source(write_file("a.txt", "x" * 100))
        assert TextExtractor(chunk_size=32).layout(src).total == 100
        assert TextExtractor(chunk_size=32).layout(src).stride == 32

    def test_slice_at_offset(self, write_file):
        src = load_source(write_file("a.txt", "aaaabbbbcc"))
        ext = TextExtractor(chunk_size=4)
        unit = ext.materialize(src, 4)
        assert unit is not None
        assert unit.index == 4
        assert unit.payload == TextPart(text="bbbb")
        assert ext.materialize(src, 8).payload == TextPart(text="cc")

    def test_blank_unit_is_empty(self, write_file):
        src = load_source(write_file("a.txt", "aaaa \n\t bbbb"))
        assert TextExtractor(chunk_size=4).materialize(src, 4) is None

    def test_null_bytes_stripped(self, write_file):
        src = load_source(write_file("a.txt", b"ab\x00cd"))
        unit = TextExtractor(chunk_size=10).materialize(src, 0)
        assert unit.payload == TextPart(text="abcd")

    def test_multibyte_characters_never_split(self, write_file):
        text = "میں اسکول جا رہا ہوں۔ " * 5
        src = load_source(write_file("urdu.txt", text))
        ext = TextExtractor(chunk_size=7)
        parts = []
        for offset in range(0, src.size, 7):
            unit = ext.materialize(src, offset)
            if unit is not None:
                parts.append(unit.payload.text)
        joined = "".join(parts)
        assert "�" not in joined
        assert joined.replace(" ", "") == text.replace(" ", "")

    def test_preview_truncated(self, write_file):
        src = load_source(write_file("a.txt", "z" * 1000))
        unit = TextExtractor(chunk_size=1000).materialize(src, 0)
        assert len(unit.preview) == 300
        assert len(unit.payload.text) == 1000

    def test_offset_out_of_range(self, write_file):
        src = load_source(write_file("a.txt", "abc"))
        with pytest.raises(ExtractionError):
            TextExtractor(chunk_size=2).materialize(src, 3)

    def test_legacy_encoding_is_extraction_error(self, write_file):
        src = load_source(write_file("cp.txt", "اسکول جا رہا".encode("cp1256")))
        with pytest.raises(ExtractionError, match="not valid UTF-8"):
            TextExtractor(chunk_size=1024).materialize(src, 0)

    def test_invalid_bytes_mid_file(self, write_file):
        src = load_source(write_file("mixed.txt", b"abcd" + b"\xff\xfe" + b"ef"))
        ext = TextExtractor(chunk_size=4)
        assert ext.materialize(src, 0).payload == TextPart(text="abcd")
        with pytest.raises(ExtractionError) as exc:
            ext.materialize(src, 4)
        assert exc.value.index == 4


# ===========================================================================
# ImageExtractor
# ===========================================================================


class TestImageExtractor:
    def test_whole_file_is_one_unit(self, write_file):
        data = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
        src = load_source(write_file("scan.png", data))
        ext = ImageExtractor()
        assert ext.layout(src).total == 1
        unit = ext.materialize(src, 0)
        assert unit.payload == ImagePart(data=data, media_type="image/png")

    def test_empty_image_is_extraction_error(self, write_file):
        src = load_source(write_file("scan.png", b""))
        with pytest.raises(ExtractionError):
            ImageExtractor().materialize(src, 0)

    def test_only_index_zero(self, write_file):
        src = load_source(write_file("scan.png", b"\x89PNG"))
        with pytest.raises(ExtractionError):
            ImageExtractor().materialize(src, 1)


# ===========================================================================
# PdfExtractor
# ===========================================================================


class TestPdfExtractor:
    def test_layout_whole_document(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        layout = PdfExtractor(flags=ModeFlags()).layout(src)
        assert (layout.origin, layout.total, layout.stride) == (0, 10, 1)

    def test_layout_with_range(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        layout = PdfExtractor(flags=ModeFlags(range_start=3, range_end=7)).layout(src)
        assert (layout.origin, layout.total) == (2, 7)

    def test_range_end_clamped_to_page_count(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        layout = PdfExtractor(flags=ModeFlags(range_start=9, range_end=50)).layout(src)
        assert (layout.origin, layout.total) == (8, 10)

    def test_range_outside_document(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        with pytest.raises(ExtractionError, match="outside document"):
            PdfExtractor(flags=ModeFlags(range_start=11)).layout(src)

    def test_text_layer(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        ext = PdfExtractor(flags=ModeFlags())
        unit = ext.materialize(src, 2)
        assert isinstance(unit.payload, TextPart)
        assert "page 3" in unit.payload.text
        ext.close()

    def test_blank_page_is_empty(self, pdf_with_blank_page):
        src = load_source(pdf_with_blank_page)
        ext = PdfExtractor(flags=ModeFlags())
        assert ext.materialize(src, 0) is not None
        assert ext.materialize(src, 1) is None

    def test_page_beyond_count(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        with pytest.raises(ExtractionError, match="does not exist"):
            PdfExtractor(flags=ModeFlags()).materialize(src, 10)

    def test_malformed_pdf(self, write_file):
        src = load_source(write_file("broken.pdf", b"%PDF-1.4 not really a pdf"))
        with pytest.raises(ExtractionError):
            PdfExtractor(flags=ModeFlags()).layout(src)

    def test_ocr_renders_jpeg(self, ten_page_pdf):
        src = load_source(ten_page_pdf)
        ext = PdfExtractor(flags=ModeFlags(use_ocr=True), render_scale=0.5)
        unit = ext.materialize(src, 0)
        ext.close()
        assert isinstance(unit.payload, ImagePart)
        assert unit.payload.media_type == "image/jpeg"
        assert unit.payload.data[:2] == b"\xff\xd8"
        assert unit.preview == "Page 1 (Scanned)"
