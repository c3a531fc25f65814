"""Speech-to-text via the Whisper command line."""

import logging
import re
from pathlib import Path

from burmese_dub.runner import EngineError, run_command

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """Transcription engine failed or its output could not be read."""

    pass


class Transcriber:
    """Runs the whisper CLI on an audio file and reads back the plain-text output.

    Whisper writes ``<stem>.txt`` into the output directory; the artifact is
    removed once read so chunk directories do not accumulate transcripts.
    """

    def __init__(
        self,
        whisper_path: str = "whisper",
        language: str = "en",
        new_session: bool = False,
    ):
        """Initialize transcriber.

        Args:
            whisper_path: Path to the whisper executable
            language: Source language code passed to whisper
            new_session: Run whisper in its own session (see run_command)
        """
        self.whisper_path = whisper_path
        self.language = language
        self.new_session = new_session
        logger.info("Transcriber initialized: whisper=%s, language=%s", whisper_path, language)

    def build_command(self, audio_path: Path, output_dir: Path) -> list[str]:
        """Build the whisper command line."""
        return [
            self.whisper_path,
            str(audio_path),
            "--language", self.language,
            "--output_format", "txt",
            "--output_dir", str(output_dir),
        ]

    @staticmethod
    def artifact_path(audio_path: Path, output_dir: Path) -> Path:
        """Path of the text file whisper produces for ``audio_path``."""
        return output_dir / f"{audio_path.stem}.txt"

    async def transcribe(
        self,
        audio_path: Path,
        output_dir: Path | None = None,
        *,
        collapse_whitespace: bool = True,
    ) -> str:
        """Transcribe an audio file.

        Args:
            audio_path: Path to the audio (or video) file
            output_dir: Directory for whisper's text artifact (defaults to the
                audio file's directory)
            collapse_whitespace: Join whisper's lines into a single line; when
                False the text is returned exactly as whisper wrote it

        Returns:
            Transcribed text; empty when no speech

        Raises:
            TranscriptionError: If whisper fails or its output cannot be read
        """
        audio_path = Path(audio_path)
        output_dir = Path(output_dir) if output_dir else audio_path.parent
        artifact = self.artifact_path(audio_path, output_dir)

        logger.debug("Starting transcription of %s", audio_path)
        try:
            await run_command(
                self.build_command(audio_path, output_dir), new_session=self.new_session
            )
        except EngineError as e:
            artifact.unlink(missing_ok=True)
            raise TranscriptionError(f"whisper failed: {e}") from e

        try:
            text = artifact.read_text(encoding="utf-8")
        except OSError as e:
            raise TranscriptionError(f"Cannot read transcription {artifact}: {e}") from e
        finally:
            artifact.unlink(missing_ok=True)

        text = self._normalize_text(text) if collapse_whitespace else text
        logger.debug("Transcription completed: %d characters", len(text))
        return text

    def _normalize_text(self, text: str) -> str:
        """Join whisper's per-segment lines into one line of text."""
        return re.sub(r"\s+", " ", text).strip()
