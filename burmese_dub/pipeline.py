"""Per-chunk transcribe -> translate -> synthesize -> play pipeline."""

import logging

from burmese_dub._types import AudioChunk, PipelineOutcome
from burmese_dub.player import Player
from burmese_dub.recorder import chunk_rms
from burmese_dub.synthesizer import SynthesisError, Synthesizer
from burmese_dub.transcriber import TranscriptionError, Transcriber
from burmese_dub.translator import TranslationError, Translator

logger = logging.getLogger(__name__)


class ChunkPipeline:
    """Processes one captured chunk through every stage.

    A pipeline run owns its chunk: the chunk audio, whisper's transcript and
    the synthesized media are all removed when the run ends, whatever the
    outcome. Failed stages are not retried.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        translator: Translator,
        synthesizer: Synthesizer,
        player: Player,
        silence_threshold: float = 0.0,
    ):
        """Initialize the pipeline with its stages.

        Args:
            transcriber: Speech-to-text stage
            translator: Translation stage (single-shot calls are used)
            synthesizer: Text-to-speech stage
            player: Playback stage
            silence_threshold: RMS level below which a chunk is treated as
                silent without transcribing it (0 disables the check)
        """
        self.transcriber = transcriber
        self.translator = translator
        self.synthesizer = synthesizer
        self.player = player
        self.silence_threshold = silence_threshold

    async def run(self, chunk: AudioChunk) -> PipelineOutcome:
        """Run all stages for ``chunk`` and clean up its files."""
        media_path = chunk.path.with_suffix(".mp3")
        transcript_path = Transcriber.artifact_path(chunk.path, chunk.path.parent)
        try:
            outcome = await self._process(chunk)
        finally:
            for path in (chunk.path, transcript_path, media_path):
                path.unlink(missing_ok=True)

        logger.debug("[chunk %d] finished: %s", chunk.number, outcome.value)
        return outcome

    async def _process(self, chunk: AudioChunk) -> PipelineOutcome:
        if self._is_silent(chunk):
            logger.debug("[chunk %d] below silence threshold, skipping", chunk.number)
            return PipelineOutcome.NO_SPEECH

        try:
            english = await self.transcriber.transcribe(chunk.path)
        except TranscriptionError as e:
            logger.error("[chunk %d] transcription failed: %s", chunk.number, e)
            return PipelineOutcome.TRANSCRIPTION_FAILED

        if not english.strip():
            logger.debug("[chunk %d] no speech detected", chunk.number)
            return PipelineOutcome.NO_SPEECH

        logger.info("[chunk %d] EN: %s", chunk.number, english)

        try:
            translated = await self.translator.translate(english)
        except TranslationError as e:
            logger.error("[chunk %d] translation failed: %s", chunk.number, e)
            return PipelineOutcome.TRANSLATION_FAILED

        logger.info("[chunk %d] %s: %s", chunk.number, self.translator.target_language.upper(), translated)

        try:
            media_path = await self.synthesizer.synthesize(
                chunk.path.with_suffix(".mp3"), text=translated
            )
        except SynthesisError as e:
            logger.error("[chunk %d] synthesis failed: %s", chunk.number, e)
            return PipelineOutcome.SYNTHESIS_FAILED

        if not await self.player.play(media_path):
            return PipelineOutcome.PLAYBACK_FAILED

        return PipelineOutcome.COMPLETED

    def _is_silent(self, chunk: AudioChunk) -> bool:
        if self.silence_threshold <= 0:
            return False
        try:
            level = chunk_rms(chunk.path)
        except RuntimeError as e:
            logger.warning("[chunk %d] cannot measure level, transcribing anyway: %s", chunk.number, e)
            return False
        return level < self.silence_threshold
