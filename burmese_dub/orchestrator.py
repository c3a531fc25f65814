"""Live capture loop dispatching concurrent chunk pipelines."""

import asyncio
import logging
import signal
from pathlib import Path

from burmese_dub._types import AudioChunk, RunSummary
from burmese_dub.config import OrchestratorConfig
from burmese_dub.pipeline import ChunkPipeline
from burmese_dub.recorder import CaptureError, ChunkRecorder

logger = logging.getLogger(__name__)


class ShutdownToken:
    """Token telling the capture loop to stop starting new chunks.

    Only the control loop checks it; chunk pipelines that were already
    dispatched are never cancelled and are drained instead.
    """

    def __init__(self):
        """Initialize token in non-cancelled state."""
        self._cancelled = False

    def cancel(self) -> None:
        """Mark token as cancelled. Repeated calls have no further effect."""
        if self._cancelled:
            return
        self._cancelled = True
        logger.info("Shutdown requested, finishing in-flight chunks")

    def is_cancelled(self) -> bool:
        """Check if token is cancelled.

        Returns:
            True if cancelled, False otherwise
        """
        return self._cancelled


class Orchestrator:
    """Captures chunks back to back and hands each one to a pipeline task.

    Capture is the only work awaited by the control loop. Each captured chunk
    is processed by its own asyncio task, bounded by ``max_in_flight``; when
    the bound is reached the loop waits for a slot before recording again.
    """

    def __init__(
        self,
        recorder: ChunkRecorder,
        pipeline: ChunkPipeline,
        config: OrchestratorConfig | None = None,
        chunk_duration: int = 5,
        token: ShutdownToken | None = None,
    ):
        """Initialize orchestrator with components.

        Args:
            recorder: ChunkRecorder used for every capture
            pipeline: ChunkPipeline run once per captured chunk
            config: OrchestratorConfig with output directory and concurrency bound
            chunk_duration: Seconds of audio per chunk
            token: ShutdownToken checked before each capture
        """
        if chunk_duration <= 0:
            raise ValueError("chunk_duration must be positive")

        self.recorder = recorder
        self.pipeline = pipeline
        self.config = config or OrchestratorConfig()
        self.chunk_duration = chunk_duration
        self.token = token or ShutdownToken()
        self.output_dir = Path(self.config.output_dir)

        self.summary = RunSummary()
        self._chunk_number = 0
        self._tasks: set[asyncio.Task] = set()
        self._slots: asyncio.Semaphore | None = None

        logger.info(
            "Orchestrator initialized: %ds chunks, max_in_flight=%s",
            chunk_duration,
            self.config.max_in_flight or "unbounded",
        )

    @property
    def in_flight(self) -> int:
        """Number of dispatched chunk pipelines that have not finished."""
        return len(self._tasks)

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Cancel the shutdown token on SIGINT or SIGTERM."""
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.token.cancel)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, lambda signum, frame: self.token.cancel())
        logger.debug("Signal handlers installed")

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL)

    async def startup(self) -> None:
        """Prepare the working directory for chunk files.

        Raises:
            RuntimeError: If the directory cannot be created
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Failed to create output directory {self.output_dir}: {e}") from e

        if self.config.max_in_flight > 0:
            self._slots = asyncio.Semaphore(self.config.max_in_flight)
        logger.info("Writing chunks to %s", self.output_dir.resolve())

    async def run(self) -> RunSummary:
        """Capture and dispatch chunks until shutdown, then drain.

        Returns:
            RunSummary with capture and outcome counters

        Raises:
            RuntimeError: If startup fails
        """
        await self.startup()
        logger.info("Live loop starting")

        while not self.token.is_cancelled():
            if self._slots is not None:
                await self._slots.acquire()
            if self.token.is_cancelled():
                self._release_slot()
                break

            self._chunk_number += 1
            chunk = AudioChunk(
                number=self._chunk_number,
                path=self.output_dir / f"chunk_{self._chunk_number}.wav",
                duration=self.chunk_duration,
            )

            logger.info("[chunk %d] recording...", chunk.number)
            try:
                await self.recorder.capture(chunk.path, chunk.duration)
            except CaptureError as e:
                logger.error("[chunk %d] recording error: %s", chunk.number, e)
                self.summary.capture_failures += 1
                self._release_slot()
                await asyncio.sleep(self.config.error_recovery_delay)
                continue

            self.summary.chunks_captured += 1
            self._dispatch(chunk)

        await self.drain()
        logger.info(
            "Live loop finished: %d chunks captured, %d processed, %d capture failures",
            self.summary.chunks_captured,
            self.summary.chunks_processed,
            self.summary.capture_failures,
        )
        return self.summary

    async def drain(self) -> None:
        """Wait for every dispatched chunk pipeline to finish."""
        if not self._tasks:
            return
        logger.info("Waiting for %d in-flight chunk(s)", len(self._tasks))
        await asyncio.wait(list(self._tasks))

    def _dispatch(self, chunk: AudioChunk) -> None:
        task = asyncio.create_task(self._process_chunk(chunk), name=f"chunk-{chunk.number}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_chunk(self, chunk: AudioChunk) -> None:
        try:
            outcome = await self.pipeline.run(chunk)
            self.summary.record(outcome)
        except Exception as e:
            logger.error("[chunk %d] pipeline error: %s", chunk.number, e, exc_info=True)
        finally:
            self._release_slot()

    def _release_slot(self) -> None:
        if self._slots is not None:
            self._slots.release()
