"""Unit test conftest: no network or cloud credentials required."""

from __future__ import annotations

from pathlib import Path

import pytest


def _pdf_bytes(pages: list[str | None]) -> bytes:
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=12)
    for text in pages:
        pdf.add_page()
        if text:
            pdf.cell(text=text)
    return bytes(pdf.output())


@pytest.fixture
def ten_page_pdf(tmp_path: Path) -> Path:
    """Generate a 10-page PDF whose page N reads 'Content on page N.'"""
    path = tmp_path / "book.pdf"
    path.write_bytes(_pdf_bytes([f"Content on page {i}." for i in range(1, 11)]))
    return path


@pytest.fixture
def pdf_with_blank_page(tmp_path: Path) -> Path:
    """Generate a 3-page PDF whose middle page has no text layer."""
    path = tmp_path / "gaps.pdf"
    path.write_bytes(_pdf_bytes(["First page text.", None, "Third page text."]))
    return path
