"""Fixed-duration audio capture via an external recorder."""

import logging
from pathlib import Path

import numpy as np
import soundfile

from burmese_dub.runner import EngineError, run_command

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """Recording a chunk failed."""

    pass


class ChunkRecorder:
    """Records fixed-duration PCM WAV chunks with arecord.

    Each capture is a separate recorder process that exits once the requested
    duration has elapsed.
    """

    def __init__(
        self,
        recorder_path: str = "arecord",
        sample_rate: int = 16000,
        channels: int = 1,
        device: str | None = None,
        new_session: bool = False,
    ):
        """Initialize chunk recorder.

        Args:
            recorder_path: Path to the arecord executable
            sample_rate: Sample rate in Hz
            channels: Number of channels
            device: ALSA capture device (None for default)
            new_session: Run arecord in its own session (see run_command)
        """
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2")

        self.recorder_path = recorder_path
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self.new_session = new_session

        logger.info(
            "ChunkRecorder initialized: %d Hz, %d channels, device=%s",
            sample_rate,
            channels,
            device or "default",
        )

    def build_command(self, path: Path, duration: int) -> list[str]:
        """Build the recorder command line for one chunk."""
        cmd = [self.recorder_path]
        if self.device:
            cmd.extend(["-D", self.device])
        cmd.extend(
            [
                "-f", "S16_LE",
                "-r", str(self.sample_rate),
                "-c", str(self.channels),
                "-t", "wav",
                "-d", str(duration),
                "-q",
                str(path),
            ]
        )
        return cmd

    async def capture(self, path: Path, duration: int) -> Path:
        """Record exactly ``duration`` seconds of audio into ``path``.

        Args:
            path: Output WAV path; an existing file is replaced
            duration: Whole seconds to record

        Returns:
            Path to the recorded WAV file

        Raises:
            ValueError: If duration is not positive
            CaptureError: If the recorder fails or produces no audio
        """
        if duration <= 0:
            raise ValueError("duration must be positive")

        path = Path(path)
        path.unlink(missing_ok=True)

        try:
            await run_command(
                self.build_command(path, duration), new_session=self.new_session
            )
        except EngineError as e:
            path.unlink(missing_ok=True)
            raise CaptureError(f"Recording failed: {e}") from e

        try:
            size = path.stat().st_size
        except OSError as e:
            raise CaptureError(f"Recorded file not created: {path}") from e
        if size == 0:
            path.unlink(missing_ok=True)
            raise CaptureError(f"Recorded file is empty: {path}")

        logger.debug("Captured %ds chunk to %s (%d bytes)", duration, path, size)
        return path


def chunk_rms(path: Path) -> float:
    """Compute the RMS level of a WAV file in the normalized [-1, 1] range.

    Raises:
        RuntimeError: If the audio cannot be read
    """
    try:
        audio_data, _ = soundfile.read(str(path), dtype="float32")
    except Exception as e:
        raise RuntimeError(f"Failed to load audio from {path}: {e}") from e

    if audio_data.ndim > 1:
        audio_data = np.mean(audio_data, axis=1)
    if audio_data.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(audio_data**2)))


def parse_device_list(output: str) -> list[dict]:
    """Parse ``arecord -L`` output into capture device entries.

    Each PCM name starts in the first column and the indented lines under it
    describe it. The names are what ``arecord -D`` accepts. The ``null``
    device is skipped since it never yields audio.

    Returns:
        List of device dicts with keys: name, description
    """
    devices = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if not line[0].isspace():
            devices.append({"name": line.strip(), "description": ""})
        elif devices:
            current = devices[-1]
            detail = line.strip()
            current["description"] = (
                f"{current['description']}, {detail}" if current["description"] else detail
            )
    return [dev for dev in devices if dev["name"] != "null"]


async def list_capture_devices(recorder_path: str = "arecord") -> list[dict]:
    """List the capture devices arecord can record from.

    Raises:
        CaptureError: If arecord cannot list its devices
    """
    try:
        result = await run_command([recorder_path, "-L"])
    except EngineError as e:
        raise CaptureError(f"Cannot list capture devices: {e}") from e
    return parse_device_list(result.stdout)
