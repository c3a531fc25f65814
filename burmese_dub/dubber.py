"""One-shot dubbing of a video file or URL into the target language."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from burmese_dub.runner import EngineError, run_command
from burmese_dub.synthesizer import SynthesisError, Synthesizer
from burmese_dub.transcriber import TranscriptionError, Transcriber
from burmese_dub.translator import TranslationError, Translator

logger = logging.getLogger(__name__)

MAX_BASE_NAME_LENGTH = 50
LANGUAGE_NAMES = {"en": "english", "my": "burmese"}


class DubError(Exception):
    """A dubbing step failed."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step} failed: {message}")


@dataclass
class DubResult:
    """Artifacts produced by a dubbing run."""

    output_dir: Path
    video: Path
    source_text: Path
    translated_text: Path
    audio: Path
    output_video: Path


def sanitize_file_name(name: str) -> str:
    """Reduce a title to a safe base file name.

    ASCII letters, digits, ``-`` and ``_`` are kept, spaces become
    underscores and everything else is dropped. The result is capped at 50
    characters; an empty result becomes ``video``.
    """
    result = re.sub(r"[^A-Za-z0-9_\- ]", "", name).replace(" ", "_")
    return result[:MAX_BASE_NAME_LENGTH] or "video"


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class Dubber:
    """Runs download, transcription, translation, synthesis and merge for one video.

    Unlike the live loop, translation goes through ``translate_long`` so long
    transcripts are split into engine-sized segments.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        translator: Translator,
        synthesizer: Synthesizer,
        ffmpeg_path: str = "ffmpeg",
        yt_dlp_path: str | None = None,
        output_root: str | Path = "ToBurmeseVideoOutput",
    ):
        """Initialize dubber.

        Args:
            transcriber: Speech-to-text stage
            translator: Translation stage
            synthesizer: Text-to-speech stage
            ffmpeg_path: Path to ffmpeg used for the final merge
            yt_dlp_path: Path to yt-dlp; required only for URL sources
            output_root: Directory under which per-video folders are created
        """
        self.transcriber = transcriber
        self.translator = translator
        self.synthesizer = synthesizer
        self.ffmpeg_path = ffmpeg_path
        self.yt_dlp_path = yt_dlp_path
        self.output_root = Path(output_root)

    def _language_name(self, code: str) -> str:
        return LANGUAGE_NAMES.get(code, code)

    async def fetch_title(self, url: str) -> str:
        """Ask yt-dlp for the video title without downloading.

        Raises:
            DubError: If yt-dlp is unavailable or fails
        """
        self._require_downloader()
        try:
            result = await run_command(
                [self.yt_dlp_path, "--print", "title", "--skip-download", url]
            )
        except EngineError as e:
            raise DubError("Video info", str(e)) from e
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else ""

    async def download(self, url: str, destination: Path) -> Path:
        """Download ``url`` as an mp4 to ``destination``.

        Raises:
            DubError: If the download fails
        """
        self._require_downloader()
        logger.info("Downloading %s", url)
        try:
            await run_command(
                [
                    self.yt_dlp_path,
                    "-f", "b[ext=mp4]/bv*+ba/b",
                    "--merge-output-format", "mp4",
                    "-o", str(destination),
                    url,
                ]
            )
        except EngineError as e:
            raise DubError("Download", str(e)) from e
        logger.info("Video saved: %s", destination)
        return destination

    async def merge(self, video: Path, audio: Path, output: Path) -> Path:
        """Replace the video's audio track with ``audio``.

        Raises:
            DubError: If ffmpeg fails
        """
        logger.info("Merging %s with %s", video.name, audio.name)
        try:
            await run_command(
                [
                    self.ffmpeg_path, "-y",
                    "-i", str(video),
                    "-i", str(audio),
                    "-c:v", "copy",
                    "-map", "0:v:0",
                    "-map", "1:a:0",
                    "-shortest",
                    str(output),
                ]
            )
        except EngineError as e:
            raise DubError("Merge", str(e)) from e
        return output

    def prepare_output_dir(self, base_name: str) -> Path:
        """Create the per-video output folder.

        Raises:
            DubError: If the folder cannot be created
        """
        output_dir = self.output_root / base_name
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DubError("Output directory", str(e)) from e
        logger.info("Output directory: %s", output_dir)
        return output_dir

    async def dub(self, source: str) -> DubResult:
        """Dub a local video file or a video URL.

        Raises:
            DubError: Naming the step that failed
        """
        if is_url(source):
            title = await self.fetch_title(source)
            logger.info("Title: %s", title)
        else:
            local = Path(source)
            if not local.is_file():
                raise DubError("Input", f"file not found: {source}")
            title = local.stem

        base_name = sanitize_file_name(title)
        output_dir = self.prepare_output_dir(base_name)

        if is_url(source):
            video = await self.download(source, output_dir / f"{base_name}.mp4")
        else:
            video = Path(source)

        source_name = self._language_name(self.transcriber.language)
        target_name = self._language_name(self.translator.target_language)
        source_text = output_dir / f"{base_name}_{source_name}.txt"
        translated_text = output_dir / f"{base_name}_{target_name}.txt"
        audio = output_dir / f"{base_name}_{target_name}.mp3"
        output_video = output_dir / f"{base_name}_{target_name}.mp4"

        logger.info("Transcribing %s", video.name)
        try:
            text = await self.transcriber.transcribe(
                video, output_dir, collapse_whitespace=False
            )
        except TranscriptionError as e:
            raise DubError("Speech-to-text", str(e)) from e
        source_text.write_text(text, encoding="utf-8")
        logger.info("Transcript saved to %s", source_text)

        logger.info("Translating %d characters", len(text))
        try:
            translated = await self.translator.translate_long(text)
        except TranslationError as e:
            raise DubError("Translation", str(e)) from e
        translated_text.write_text(translated, encoding="utf-8")
        logger.info("Translation saved to %s", translated_text)

        logger.info("Synthesizing speech (voice: %s)", self.synthesizer.voice.value)
        try:
            await self.synthesizer.synthesize(audio, text_file=translated_text)
        except SynthesisError as e:
            raise DubError("Text-to-speech", str(e)) from e
        logger.info("Audio saved to %s", audio)

        await self.merge(video, audio, output_video)
        logger.info("Complete! Final video: %s", output_video)

        return DubResult(
            output_dir=output_dir,
            video=video,
            source_text=source_text,
            translated_text=translated_text,
            audio=audio,
            output_video=output_video,
        )

    def _require_downloader(self) -> None:
        if not self.yt_dlp_path:
            raise DubError("Download", "yt-dlp is not configured")
