"""Text translation through a stdin/stdout translation filter process."""

import logging

from burmese_dub.runner import CommandNotFoundError, EngineError, run_command

logger = logging.getLogger(__name__)

MAX_SEGMENT_CHARS = 4500
FALLBACK_PREFIX = "Translation error - "
_SENTENCE_TERMINALS = ".!?"


class TranslationError(Exception):
    """Translation engine could not be reached or failed."""

    pass


def _find_split_point(window: str) -> int:
    """Choose where to cut a full-size window.

    Scans backward from the window end down to (not including) its midpoint,
    first for a sentence terminal followed by whitespace or the window end,
    then for whitespace. Falls back to a hard cut at the window length.
    """
    size = len(window)
    lower = size // 2

    for i in range(size - 1, lower, -1):
        if window[i] in _SENTENCE_TERMINALS and (i + 1 >= size or window[i + 1].isspace()):
            return i + 1

    for i in range(size - 1, lower, -1):
        if window[i].isspace():
            return i + 1

    return size


def split_text(text: str, max_size: int = MAX_SEGMENT_CHARS) -> list[str]:
    """Split text into ordered segments of at most ``max_size`` characters.

    Text that already fits is returned unchanged as a single segment.
    Otherwise each cut prefers a sentence boundary, then whitespace, in the
    second half of the window; segments are stripped of surrounding
    whitespace.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    if len(text) <= max_size:
        return [text]

    segments = []
    remaining = text
    while remaining:
        if len(remaining) <= max_size:
            segments.append(remaining)
            break

        split_point = _find_split_point(remaining[:max_size])
        segment = remaining[:split_point].strip()
        if segment:
            segments.append(segment)
        remaining = remaining[split_point:].strip()

    return segments


class Translator:
    """Translates text by piping it through a one-shot translation filter.

    The filter reads the source text on stdin and writes the translation to
    stdout; every call starts a fresh process.
    """

    def __init__(
        self,
        python_path: str,
        source_language: str = "en",
        target_language: str = "my",
        max_chars: int = MAX_SEGMENT_CHARS,
        new_session: bool = False,
    ):
        """Initialize translator.

        Args:
            python_path: Python interpreter that has burmese_dub installed
            source_language: Source language code
            target_language: Destination language code
            max_chars: Maximum characters per engine call in translate_long
            new_session: Run the filter in its own session (see run_command)
        """
        self.python_path = python_path
        self.source_language = source_language
        self.target_language = target_language
        self.max_chars = max_chars
        self.new_session = new_session
        logger.info(
            "Translator initialized: %s -> %s (max %d chars per request)",
            source_language,
            target_language,
            max_chars,
        )

    def build_command(self) -> list[str]:
        """Build the translation filter command line."""
        return [
            self.python_path,
            "-m", "burmese_dub.translate_filter",
            "--source", self.source_language,
            "--target", self.target_language,
        ]

    async def translate(self, text: str) -> str:
        """Translate text in a single engine call.

        Raises:
            TranslationError: If the engine cannot be started or exits non-zero
        """
        try:
            result = await run_command(
                self.build_command(), input_text=text, new_session=self.new_session
            )
        except EngineError as e:
            raise TranslationError(f"Translation failed: {e}") from e
        return result.stdout.strip()

    async def translate_long(self, text: str) -> str:
        """Translate arbitrarily long text segment by segment.

        A segment whose engine call fails is replaced by the fallback marker
        followed by the original segment, and the remaining segments are still
        translated.

        Raises:
            TranslationError: If the engine process cannot be started at all
        """
        segments = split_text(text, self.max_chars)
        translated = []

        for index, segment in enumerate(segments, start=1):
            logger.info("Translating segment %d/%d", index, len(segments))
            try:
                result = await run_command(
                    self.build_command(),
                    input_text=segment,
                    check=False,
                    new_session=self.new_session,
                )
            except CommandNotFoundError as e:
                raise TranslationError(f"Cannot start translation engine: {e}") from e

            if result.returncode != 0:
                logger.warning(
                    "Segment %d/%d failed with exit code %d, keeping source text: %s",
                    index,
                    len(segments),
                    result.returncode,
                    (result.stderr or "").strip(),
                )
                translated.append(FALLBACK_PREFIX + segment)
                continue

            translated.append(result.stdout.strip())

        return " ".join(translated)
