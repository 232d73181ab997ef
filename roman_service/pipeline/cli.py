from __future__ import annotations

import argparse

from roman_service.pipeline.config import MAX_BATCH_SIZE, MIN_BATCH_SIZE


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="urdu-roman",
        description="Stream an Urdu book (.txt, .pdf or image) through Gemini into Roman Urdu",
    )

    p.add_argument("input", help="Source document (.txt, .pdf or image)")
    p.add_argument(
        "--batch-size",
        type=int,
        default=0,
        help=f"Units per request, {MIN_BATCH_SIZE}-{MAX_BATCH_SIZE} (default from env ROMAN_BATCH_SIZE)",
    )
    p.add_argument("--ocr", action="store_true", help="Rasterize PDF pages and transcribe them")
    p.add_argument("--range-start", type=int, default=None, help="First PDF page to process (1-based)")
    p.add_argument("--range-end", type=int, default=None, help="Last PDF page to process (inclusive)")
    p.add_argument(
        "--resume",
        default=None,
        help="Recovery snapshot to resume from (local path or gs:// URI)",
    )
    p.add_argument(
        "--meta-out",
        default=None,
        help="Where to write the recovery snapshot on pause/error (default <input>_meta.txt)",
    )
    p.add_argument("--out", default=None, help="Result file (default Roman_<stem>.txt next to input)")
    p.add_argument("--no-stream", action="store_true", help="Do not echo fragments to stdout")
    p.add_argument(
        "--log-level",
        default=None,
        help="Python logging level, INFO, DEBUG, ... (default from env ROMAN_LOG_LEVEL)",
    )
    return p
