"""Text-to-speech via the edge-tts command line."""

import logging
from pathlib import Path

from burmese_dub._types import Voice
from burmese_dub.runner import EngineError, run_command

logger = logging.getLogger(__name__)


class SynthesisError(Exception):
    """Speech synthesis engine failed."""

    pass


class Synthesizer:
    """Renders text to an MP3 file with a fixed voice and speech rate."""

    def __init__(
        self,
        edge_tts_path: str,
        voice: Voice = Voice.MALE,
        rate: str = "-10%",
        new_session: bool = False,
    ):
        self.edge_tts_path = edge_tts_path
        self.voice = voice
        self.rate = rate
        self.new_session = new_session
        logger.info("Synthesizer initialized: voice=%s, rate=%s", voice.value, rate)

    def build_command(
        self,
        output_path: Path,
        *,
        text: str | None = None,
        text_file: Path | None = None,
    ) -> list[str]:
        """Build the edge-tts command line for literal text or a text file."""
        if (text is None) == (text_file is None):
            raise ValueError("Exactly one of text or text_file must be given")

        cmd = [self.edge_tts_path, "--voice", self.voice.value]
        if text is not None:
            cmd.extend(["--text", text])
        else:
            cmd.extend(["--file", str(text_file)])
        cmd.extend(["--write-media", str(output_path), f"--rate={self.rate}"])
        return cmd

    async def synthesize(
        self,
        output_path: Path,
        *,
        text: str | None = None,
        text_file: Path | None = None,
    ) -> Path:
        """Synthesize speech into ``output_path``.

        Raises:
            SynthesisError: If edge-tts fails or writes no media
        """
        output_path = Path(output_path)
        cmd = self.build_command(output_path, text=text, text_file=text_file)

        try:
            await run_command(cmd, new_session=self.new_session)
        except EngineError as e:
            output_path.unlink(missing_ok=True)
            raise SynthesisError(f"edge-tts failed: {e}") from e

        if not output_path.exists():
            raise SynthesisError(f"edge-tts produced no media at {output_path}")

        logger.debug("Synthesized speech to %s", output_path)
        return output_path
