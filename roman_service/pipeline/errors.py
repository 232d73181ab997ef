from __future__ import annotations


class PipelineError(Exception):
    """Base exception for the transliteration pipeline."""


class UnsupportedInputError(PipelineError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Supported formats: .txt, .pdf, images. Got: {name}")
        self.name = name


class ExtractionError(PipelineError):
    """A work unit could not be materialized (render/decode failure)."""

    def __init__(self, index: int, message: str) -> None:
        super().__init__(f"Unit {index}: {message}")
        self.index = index


class DispatchError(PipelineError):
    """The remote transliteration stream failed; the whole batch is void."""

    def __init__(self, message: str) -> None:
        super().__init__(f"AI Uplink Error: {message}")


class SnapshotParseError(PipelineError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to parse metadata file. {detail}")
        self.detail = detail
