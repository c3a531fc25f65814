"""Shared types and dataclasses for cross-module use."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class AudioChunk:
    """One captured fixed-duration audio segment."""

    number: int
    path: Path
    duration: int


class PipelineOutcome(Enum):
    """Terminal state of a single chunk pipeline."""

    NO_SPEECH = "no_speech"
    TRANSCRIPTION_FAILED = "transcription_failed"
    TRANSLATION_FAILED = "translation_failed"
    SYNTHESIS_FAILED = "synthesis_failed"
    PLAYBACK_FAILED = "playback_failed"
    COMPLETED = "completed"


class Voice(Enum):
    """Text-to-speech voice; the value is the engine voice identifier."""

    MALE = "my-MM-ThihaNeural"
    FEMALE = "my-MM-NilarNeural"


@dataclass
class RunSummary:
    """Counters collected over one orchestrator run."""

    chunks_captured: int = 0
    capture_failures: int = 0
    outcomes: dict[PipelineOutcome, int] = field(default_factory=dict)

    def record(self, outcome: PipelineOutcome) -> None:
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1

    @property
    def chunks_processed(self) -> int:
        return sum(self.outcomes.values())
