"""Environment-variable-driven configuration for the transliteration service.

All config comes from env vars; per-run knobs live in
``roman_service.pipeline.config.PipelineConfig``.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# -- Generation ---------------------------------------------------------------
ROMAN_MODEL: str = os.getenv("ROMAN_MODEL", "gemini-3-flash-preview")
ROMAN_TEMPERATURE: float = float(os.getenv("ROMAN_TEMPERATURE", "0.1"))
ROMAN_THINKING_BUDGET: int = _env_int("ROMAN_THINKING_BUDGET", 0)

# -- Work units ---------------------------------------------------------------
ROMAN_CHUNK_SIZE_BYTES: int = _env_int("ROMAN_CHUNK_SIZE_BYTES", 32 * 1024)
ROMAN_PREVIEW_CHARS: int = _env_int("ROMAN_PREVIEW_CHARS", 300)
ROMAN_MAX_PREVIEW_CHUNKS: int = _env_int("ROMAN_MAX_PREVIEW_CHUNKS", 50)

# -- Page rendering -----------------------------------------------------------
ROMAN_RENDER_SCALE: float = float(os.getenv("ROMAN_RENDER_SCALE", "1.5"))
ROMAN_JPEG_QUALITY: int = _env_int("ROMAN_JPEG_QUALITY", 70)

# -- GCP ----------------------------------------------------------------------
VERTEX_PROJECT: str | None = os.getenv("GOOGLE_CLOUD_PROJECT")
VERTEX_LOCATION: str = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")
ROMAN_USE_VERTEX: bool = _env_bool("ROMAN_USE_VERTEX", False)
