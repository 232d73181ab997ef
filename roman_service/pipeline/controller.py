"""Pipeline controller: extract -> batch -> stream -> commit, with resume.

Run states::

    idle -> processing -> {paused, completed, error}
    paused -> processing (resume) | idle (stop)
    error  -> processing (retry at the same cursor) | idle (stop)

A run is a single cooperative loop. Pause and abort are observed before each
batch, before each unit extraction and after every streamed fragment. Nothing
reaches the ledger until a batch has streamed to a clean finish, and the
cancellation check before a commit has no suspension point between it and
the commit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import aclosing
from pathlib import Path

from roman_service.logging_config import bind_run_id, generate_run_id, unbind_run_id
from roman_service.pipeline import resume
from roman_service.pipeline.config import PipelineConfig
from roman_service.pipeline.dispatcher import StreamDispatcher
from roman_service.pipeline.errors import (
    DispatchError,
    ExtractionError,
    SnapshotParseError,
    UnsupportedInputError,
)
from roman_service.pipeline.extractors.base import Extractor
from roman_service.pipeline.extractors.image import ImageExtractor
from roman_service.pipeline.extractors.pdf import PdfExtractor
from roman_service.pipeline.extractors.text import TextExtractor
from roman_service.pipeline.ledger import ProgressLedger
from roman_service.pipeline.planner import load_source, next_range
from roman_service.pipeline.types import (
    CancellationToken,
    ChunkPreview,
    ProgressState,
    RecoverySnapshot,
    RunState,
    SourceDocument,
    UnitLayout,
    UnitPayload,
)

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[SourceDocument, PipelineConfig], Extractor]


def build_extractor(source: SourceDocument, config: PipelineConfig) -> Extractor:
    extractors: list[Extractor] = [
        TextExtractor(chunk_size=config.chunk_size_bytes),
        PdfExtractor(flags=config.flags),
        ImageExtractor(),
    ]
    extractor = next((ex for ex in extractors if ex.can_handle(source)), None)
    if extractor is None:
        raise UnsupportedInputError(source.name)
    return extractor


class PipelineController:
    def __init__(
        self,
        *,
        config: PipelineConfig,
        dispatcher: StreamDispatcher | None = None,
        extractor_factory: ExtractorFactory = build_extractor,
        on_fragment: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config.validate()
        self._config = config
        self._dispatcher = dispatcher or StreamDispatcher()
        self._extractor_factory = extractor_factory
        self._on_fragment = on_fragment
        self._clock = clock

        self._source: SourceDocument | None = None
        self._ledger = ProgressLedger()
        self._state = RunState.IDLE
        self._error: str | None = None
        self._token: CancellationToken | None = None
        self._running = False
        self._resume_requested = False
        self._live: list[str] = []
        self._current_original = ""

    # -- Read-only views -------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def source(self) -> SourceDocument | None:
        return self._source

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def live_text(self) -> str:
        return "".join(self._live)

    @property
    def current_original(self) -> str:
        return self._current_original

    @property
    def preview(self) -> list[ChunkPreview]:
        return self._ledger.preview

    def progress(self) -> ProgressState:
        return self._ledger.state()

    def export_text(self) -> str:
        return self._ledger.export_text()

    # -- Session setup ---------------------------------------------------------

    def load(self, path: str | Path, *, media_type: str | None = None) -> SourceDocument:
        """Load a new source document; replaces the previous one and all progress."""
        self._ensure_not_running("load a document")
        source = load_source(path, media_type=media_type)
        self._source = source
        self._reset_session()
        logger.info("Loaded %s (%s, %d bytes)", source.name, source.kind.value, source.size)
        return source

    def configure(self, config: PipelineConfig) -> None:
        self._ensure_not_running("change configuration")
        config.validate()
        if config.flags != self._config.flags and self._ledger.has_progress():
            raise ValueError("Stop the session before changing OCR mode or page range")
        self._config = config

    def import_snapshot(self, blob: str | bytes) -> RecoverySnapshot:
        """Rehydrate progress from a recovery snapshot; leaves the run paused.

        Live state is untouched when the blob is rejected.
        """
        self._ensure_not_running("import a snapshot")
        if self._source is None:
            raise RuntimeError("Load the source document before importing a snapshot")
        return self.restore(resume.deserialize(blob))

    def restore(self, snapshot: RecoverySnapshot) -> RecoverySnapshot:
        """Apply an already parsed snapshot to the loaded source."""
        self._ensure_not_running("import a snapshot")
        source = self._source
        if source is None:
            raise RuntimeError("Load the source document before importing a snapshot")
        if snapshot.file_name != source.name or snapshot.file_size != source.size:
            raise SnapshotParseError(
                f"snapshot is for {snapshot.file_name} ({snapshot.file_size} bytes), "
                f"loaded {source.name} ({source.size} bytes)"
            )
        if snapshot.content_hash is not None and snapshot.content_hash != source.content_hash:
            raise SnapshotParseError(
                f"snapshot content hash {snapshot.content_hash[:12]} does not match "
                f"{source.name} ({source.content_hash[:12]})"
            )

        self._ledger = ProgressLedger.from_snapshot(snapshot)
        self._config = self._config.with_flags(snapshot.flags)
        self._state = RunState.PAUSED
        self._error = None
        self._clear_live()
        logger.info(
            "Imported snapshot for %s: cursor=%d/%d, %d segments",
            snapshot.file_name,
            snapshot.cursor,
            snapshot.total_units,
            len(snapshot.accumulated),
        )
        return snapshot

    def export_snapshot(self) -> str:
        if self._source is None:
            raise RuntimeError("No source document loaded")
        return resume.serialize(self._ledger.state(), self._source, self._config.flags)

    # -- Transport -------------------------------------------------------------

    async def run(self) -> RunState:
        """Process from the committed cursor until done, paused, stopped or failed.

        A start request while a run is active is a no-op, except while that run
        is winding down from a pause: the request is then recorded and the loop
        carries on from the committed cursor instead of exiting.
        """
        if self._running:
            if self._state is RunState.PAUSED:
                self._resume_requested = True
                self._state = RunState.PROCESSING
                logger.info("Resume requested while pause is settling")
            else:
                logger.info("Run already in progress; ignoring start request")
            return self._state
        if self._source is None:
            raise RuntimeError("No source document loaded")

        run_id = generate_run_id()
        log_token = bind_run_id(run_id)
        try:
            return await self._run(run_id)
        finally:
            unbind_run_id(log_token)

    async def _run(self, run_id: str) -> RunState:
        token = CancellationToken()
        self._token = token
        self._running = True
        self._resume_requested = False
        self._state = RunState.PROCESSING
        self._error = None
        source = self._source
        ledger = self._ledger
        extractor: Extractor | None = None
        started = self._clock()
        elapsed_before = ledger.elapsed

        try:
            extractor = self._extractor_factory(source, self._config)
            layout = await asyncio.to_thread(extractor.layout, source)
            if token.is_aborted():
                return self._state
            ledger.bind(layout)
            logger.info(
                "Run %s started for %s at cursor %d/%d (batch=%d, ocr=%s)",
                run_id,
                source.name,
                ledger.cursor,
                layout.total,
                self._config.batch_size,
                self._config.use_ocr,
            )
            while True:
                await self._process(
                    source=source,
                    extractor=extractor,
                    layout=layout,
                    ledger=ledger,
                    token=token,
                    started=started,
                    elapsed_before=elapsed_before,
                )
                # Nothing is in flight here; a resume queued during the pause
                # continues with a fresh token.
                if token.is_aborted() or not token.is_paused() or not self._resume_requested:
                    break
                self._resume_requested = False
                token = CancellationToken()
                self._token = token
                logger.info("Resuming at cursor %d", ledger.cursor)
        except (ExtractionError, DispatchError) as e:
            if token.is_aborted():
                return self._state
            logger.error("Run failed at cursor %d: %s", ledger.cursor, e)
            self._state = RunState.ERROR
            self._error = f"Stream Error: {e}"
            self._live.clear()
            return self._state
        except asyncio.CancelledError:
            if not token.is_aborted():
                self._state = RunState.PAUSED
            raise
        finally:
            if extractor is not None:
                extractor.close()
            if self._token is token:
                self._running = False

        if token.is_aborted():
            return self._state
        if token.is_paused():
            logger.info("Run paused at cursor %d", ledger.cursor)
            self._state = RunState.PAUSED
            return self._state

        ledger.mark_complete()
        self._state = RunState.COMPLETED
        self._clear_live()
        logger.info(
            "Run completed: %d segments, cursor %d",
            len(ledger.accumulated),
            ledger.cursor,
        )
        return self._state

    def pause(self) -> None:
        if self._state is not RunState.PROCESSING or self._token is None:
            logger.debug("Pause ignored in state %s", self._state.value)
            return
        self._token.pause()
        self._resume_requested = False
        self._state = RunState.PAUSED
        logger.info("Pause requested at cursor %d", self._ledger.cursor)

    def stop(self) -> None:
        """Abort any in-flight request and reset the session to idle.

        Destructive: the cursor and accumulated output are discarded.
        """
        if self._token is not None:
            self._token.abort()
        self._token = None
        self._running = False
        self._resume_requested = False
        self._reset_session()
        logger.info("Session stopped and reset")

    # -- Internals -------------------------------------------------------------

    async def _process(
        self,
        *,
        source: SourceDocument,
        extractor: Extractor,
        layout: UnitLayout,
        ledger: ProgressLedger,
        token: CancellationToken,
        started: float,
        elapsed_before: float,
    ) -> None:
        while not token.stopped:
            rng = next_range(ledger.cursor, layout.total, self._config.batch_size, stride=layout.stride)
            if rng is None:
                return

            payloads: list[UnitPayload] = []
            originals: list[str] = []
            for index in rng.indices():
                if token.stopped:
                    return
                unit = await asyncio.to_thread(extractor.materialize, source, index)
                if unit is not None:
                    payloads.append(unit.payload)
                    originals.append(unit.preview)
            if token.stopped:
                return

            if not payloads:
                logger.debug("Units %d-%d blank; skipping", rng.start, rng.end)
                ledger.advance(rng.next_cursor, elapsed_before + (self._clock() - started))
                continue

            self._live.clear()
            self._current_original = "\n---\n".join(originals)
            logger.info(
                "Dispatching %d unit(s) %d-%d", len(payloads), rng.start, rng.end
            )

            fragments: list[str] = []
            async with aclosing(self._dispatcher.dispatch(payloads, token)) as stream:
                async for fragment in stream:
                    if token.stopped:
                        break
                    fragments.append(fragment)
                    self._live.append(fragment)
                    if self._on_fragment is not None:
                        self._on_fragment(fragment)

            # Check-then-commit: no await between the two.
            if token.stopped:
                logger.info("Discarded in-flight batch %d-%d", rng.start, rng.end)
                return
            ledger.commit(
                ledger.fraction_at(rng.next_cursor),
                elapsed_before + (self._clock() - started),
                "".join(fragments),
                cursor=rng.next_cursor,
                original=" | ".join(originals),
                suffix=extractor.segment_suffix,
            )

    def _reset_session(self) -> None:
        self._ledger = ProgressLedger(total_bytes=self._source.size if self._source else 0)
        self._state = RunState.IDLE
        self._error = None
        self._clear_live()

    def _clear_live(self) -> None:
        self._live.clear()
        self._current_original = ""

    def _ensure_not_running(self, action: str) -> None:
        if self._running:
            raise RuntimeError(f"Cannot {action} while processing")
