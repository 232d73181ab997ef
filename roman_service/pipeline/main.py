from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from roman_service.logging_config import setup_logging
from roman_service.pipeline import resume
from roman_service.pipeline.cli import build_parser
from roman_service.pipeline.config import PipelineConfig
from roman_service.pipeline.controller import PipelineController
from roman_service.pipeline.errors import PipelineError
from roman_service.pipeline.planner import result_filename, snapshot_filename
from roman_service.pipeline.types import RunState
from roman_service.storage import write_text

logger = logging.getLogger("roman_service.pipeline")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_PAUSED = 130


def config_from_args(args: argparse.Namespace, base: PipelineConfig) -> PipelineConfig:
    # CLI overrides
    cfg = base
    if args.batch_size and args.batch_size > 0:
        cfg = dataclasses.replace(cfg, batch_size=args.batch_size)
    if args.ocr:
        cfg = dataclasses.replace(cfg, use_ocr=True)
    if args.range_start is not None:
        cfg = dataclasses.replace(cfg, range_start=args.range_start)
    if args.range_end is not None:
        cfg = dataclasses.replace(cfg, range_end=args.range_end)
    cfg.validate()
    return cfg


def _echo(fragment: str) -> None:
    sys.stdout.write(fragment)
    sys.stdout.flush()


def _install_pause_handler(controller: PipelineController) -> bool:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.pause)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unsupported here; Ctrl-C will not pause cleanly")
        return False
    return True


async def run_cli(args: argparse.Namespace) -> int:
    cfg = config_from_args(args, PipelineConfig.from_env())
    controller = PipelineController(
        config=cfg,
        on_fragment=None if args.no_stream else _echo,
    )

    source = controller.load(args.input)
    if args.resume:
        controller.restore(resume.load_snapshot(args.resume))

    input_dir = Path(args.input).resolve().parent
    meta_out = args.meta_out or str(input_dir / snapshot_filename(source))
    out = args.out or str(input_dir / result_filename(source))

    installed = _install_pause_handler(controller)
    try:
        state = await controller.run()
    finally:
        if installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    if state is RunState.COMPLETED:
        write_text(out, controller.export_text())
        logger.info("Result written to %s", out)
        return EXIT_OK

    resume.save_snapshot(controller.export_snapshot(), meta_out)
    if state is RunState.PAUSED:
        logger.info("Paused; resume with --resume %s", meta_out)
        return EXIT_PAUSED
    logger.error("%s", controller.error)
    return EXIT_ERROR


async def _amain() -> int:
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(level=args.log_level)

    try:
        return await run_cli(args)
    except (PipelineError, ValueError, OSError) as e:
        logger.error("%s", e)
        return EXIT_USAGE


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
