"""Shared test fixtures for the urdu-roman test suite."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import pytest

from roman_service.pipeline.config import PipelineConfig
from roman_service.pipeline.types import ImagePart, TextPart, UnitPayload


def label(payload: UnitPayload) -> str:
    if isinstance(payload, TextPart):
        return payload.text.strip()[:12]
    assert isinstance(payload, ImagePart)
    return f"img:{payload.media_type}"


class FakeTransform:
    """Stand-in for the Gemini stream: two fragments per unit, in order.

    ``fail_on`` holds 1-based call numbers that fail after one fragment;
    ``gate`` holds every stream before its first fragment until set.
    """

    def __init__(
        self,
        *,
        fail_on: set[int] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.calls: list[list[UnitPayload]] = []
        self.closed = 0
        self._fail_on = fail_on or set()
        self._gate = gate

    def __call__(self, payloads: Sequence[UnitPayload]) -> AsyncIterator[str]:
        self.calls.append(list(payloads))
        return self._stream(len(self.calls), list(payloads))

    async def _stream(self, call_no: int, payloads: list[UnitPayload]) -> AsyncIterator[str]:
        try:
            if self._gate is not None:
                await self._gate.wait()
            for p in payloads:
                yield f"<{label(p)}"
                if call_no in self._fail_on:
                    raise ConnectionError("quota exceeded")
                await asyncio.sleep(0)
                yield ">"
        finally:
            self.closed += 1


@pytest.fixture
def fake_transform() -> FakeTransform:
    return FakeTransform()


@pytest.fixture
def make_transform():
    return FakeTransform


@pytest.fixture
def make_config():
    def _make(
        *,
        batch_size: int = 1,
        use_ocr: bool = False,
        range_start: int | None = None,
        range_end: int | None = None,
        chunk_size_bytes: int = 32 * 1024,
    ) -> PipelineConfig:
        return PipelineConfig(
            batch_size=batch_size,
            use_ocr=use_ocr,
            range_start=range_start,
            range_end=range_end,
            chunk_size_bytes=chunk_size_bytes,
        )

    return _make


@pytest.fixture
def write_file(tmp_path: Path):
    def _write(name: str, data: str | bytes) -> Path:
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_bytes(data)
        return path

    return _write
