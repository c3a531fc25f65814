"""Configuration loader and validation."""

import logging
import os
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from burmese_dub._types import Voice
from burmese_dub.runner import CommandNotFoundError, resolve_executable

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

__all__ = [
    "AudioConfig",
    "EnginesConfig",
    "TranslationConfig",
    "SynthesisConfig",
    "OrchestratorConfig",
    "DubConfig",
    "GeneralConfig",
    "Config",
    "ConfigError",
    "load_config",
    "load_environment",
    "resolve_voice",
    "resolve_engines",
]

VOICE_ENV_VAR = "VOICE_PRESENTER"
CONFIG_ENV_VAR = "BURMESE_DUB_CONFIG"

_FEMALE_PRESENTERS = ("women", "girl")
_RATE_PATTERN = re.compile(r"^[+-]\d+%$")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


def resolve_voice(presenter: str | None) -> Voice:
    """Map a presenter setting to a TTS voice.

    ``women`` and ``girl`` select the female voice; ``men``, ``thiha``, an
    empty value and anything unrecognized select the male voice. Matching is
    case-insensitive and exact, so surrounding whitespace is not ignored.
    """
    if presenter and presenter.lower() in _FEMALE_PRESENTERS:
        return Voice.FEMALE
    return Voice.MALE


@dataclass(frozen=True)
class AudioConfig:
    """Live capture configuration."""

    sample_rate: int = 16000
    channels: int = 1
    chunk_duration: int = 5
    device: str | None = None
    silence_threshold: float = 0.0


@dataclass(frozen=True)
class EnginesConfig:
    """External engine executables (names on PATH or explicit paths)."""

    recorder: str = "arecord"
    whisper: str = "whisper"
    python: str = ""
    edge_tts: str = "edge-tts"
    player: str = "ffplay"
    ffmpeg: str = "ffmpeg"
    yt_dlp: str = "yt-dlp"


@dataclass(frozen=True)
class TranslationConfig:
    """Translation engine settings."""

    source_language: str = "en"
    target_language: str = "my"
    max_chars: int = 4500


@dataclass(frozen=True)
class SynthesisConfig:
    """Speech synthesis settings."""

    voice: Voice = Voice.MALE
    rate: str = "-10%"


@dataclass(frozen=True)
class OrchestratorConfig:
    """Live loop settings."""

    output_dir: str = "LiveRecordOutput"
    max_in_flight: int = 4
    error_recovery_delay: float = 1.0


@dataclass(frozen=True)
class DubConfig:
    """Batch dubbing settings."""

    output_root: str = "ToBurmeseVideoOutput"


@dataclass(frozen=True)
class GeneralConfig:
    """General application settings."""

    verbose: bool = False


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    audio: AudioConfig = field(default_factory=AudioConfig)
    engines: EnginesConfig = field(default_factory=EnginesConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    dub: DubConfig = field(default_factory=DubConfig)
    general: GeneralConfig = field(default_factory=GeneralConfig)

    @classmethod
    def from_toml(
        cls,
        path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> "Config":
        """Load configuration from an optional TOML file with environment overrides.

        Args:
            path: Explicit config file path. If None, searches in order:
                  1. BURMESE_DUB_CONFIG env var
                  2. ./burmese_dub.toml
                  3. ~/.config/burmese_dub.toml
                  Defaults are used when no file exists.
            env: Environment variables for overrides (defaults to os.environ)

        Returns:
            Loaded Config instance

        Raises:
            ConfigError: If an explicit config file is missing or values are invalid
        """
        if env is None:
            env = os.environ

        resolved_path = _resolve_config_path(path, env)
        raw_data = _load_toml_file(resolved_path) if resolved_path else {}

        try:
            coerced = _coerce_config_values(raw_data, env)
            return cls(
                audio=AudioConfig(**coerced["audio"]),
                engines=EnginesConfig(**coerced["engines"]),
                translation=TranslationConfig(**coerced["translation"]),
                synthesis=SynthesisConfig(**coerced["synthesis"]),
                orchestrator=OrchestratorConfig(**coerced["orchestrator"]),
                dub=DubConfig(**coerced["dub"]),
                general=GeneralConfig(**coerced["general"]),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration values: {e}") from e

    def validate(self) -> None:
        """Validate value ranges.

        Raises:
            ConfigError: If any value is out of range
        """
        validate_audio_config(self.audio)
        validate_translation_config(self.translation)
        validate_synthesis_config(self.synthesis)

        if self.orchestrator.max_in_flight < 0:
            raise ConfigError(
                f"max_in_flight must be non-negative, got {self.orchestrator.max_in_flight}"
            )
        if self.orchestrator.error_recovery_delay < 0:
            raise ConfigError(
                f"error_recovery_delay must be non-negative, "
                f"got {self.orchestrator.error_recovery_delay}"
            )
        if not self.orchestrator.output_dir:
            raise ConfigError("orchestrator.output_dir must not be empty")


def load_environment(dotenv_path: Path | None = None) -> bool:
    """Load a .env file into os.environ without overriding existing variables.

    Returns:
        True if a .env file was found and loaded
    """
    path = dotenv_path or Path.cwd() / ".env"
    if not path.exists():
        logger.warning(".env file not found at %s, using environment and defaults", path)
        return False
    loaded = load_dotenv(path)
    logger.debug("Loaded environment from %s", path)
    return loaded


def _resolve_config_path(
    cli_path: Path | None,
    env: Mapping[str, str],
) -> Path | None:
    """Resolve configuration file path following search order.

    Raises:
        ConfigError: If an explicitly requested config file does not exist
    """
    if cli_path:
        cli_path = Path(cli_path)
        if cli_path.exists():
            logger.info("Using config file: %s", cli_path.resolve())
            return cli_path.resolve()
        raise ConfigError(f"Config file not found: {cli_path}")

    candidates = []
    if env_path := env.get(CONFIG_ENV_VAR):
        candidates.append(Path(env_path))

    candidates.append(Path("burmese_dub.toml"))
    candidates.append(Path.home() / ".config" / "burmese_dub.toml")

    for candidate in candidates:
        if candidate.exists():
            logger.info("Using config file: %s", candidate.resolve())
            return candidate.resolve()

    logger.debug(
        "No config file found (searched: %s), using defaults",
        ", ".join(str(c) for c in candidates),
    )
    return None


def _load_toml_file(path: Path) -> dict:
    """Load and parse TOML configuration file.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except Exception as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e


def _coerce_config_values(raw_data: dict, env: Mapping[str, str]) -> dict:
    """Normalize raw TOML data for dataclass instantiation.

    The voice comes from ``[synthesis] voice`` when present, otherwise from the
    VOICE_PRESENTER environment variable.
    """
    coerced = {}

    for section in (
        "audio",
        "engines",
        "translation",
        "synthesis",
        "orchestrator",
        "dub",
        "general",
    ):
        value = raw_data.get(section, {})
        if not isinstance(value, dict):
            raise ConfigError(f"Section [{section}] must be a table")
        coerced[section] = dict(value)

    synthesis = coerced["synthesis"]
    presenter = synthesis.get("voice", env.get(VOICE_ENV_VAR, ""))
    if not isinstance(presenter, str):
        raise ConfigError("synthesis.voice must be a string")
    synthesis["voice"] = resolve_voice(presenter)

    audio = coerced["audio"]
    if audio.get("device") == "":
        audio["device"] = None

    return coerced


def validate_audio_config(audio_cfg: AudioConfig) -> None:
    """Validate live capture settings.

    Raises:
        ConfigError: If capture settings are invalid
    """
    if audio_cfg.sample_rate <= 0:
        raise ConfigError(f"sample_rate must be positive, got {audio_cfg.sample_rate}")
    if audio_cfg.channels not in (1, 2):
        raise ConfigError(f"channels must be 1 or 2, got {audio_cfg.channels}")
    if not isinstance(audio_cfg.chunk_duration, int) or audio_cfg.chunk_duration <= 0:
        raise ConfigError(
            f"chunk_duration must be a positive whole number of seconds, "
            f"got {audio_cfg.chunk_duration}"
        )
    if audio_cfg.silence_threshold < 0:
        raise ConfigError(
            f"silence_threshold must be non-negative, got {audio_cfg.silence_threshold}"
        )


def validate_translation_config(translation_cfg: TranslationConfig) -> None:
    """Validate translation settings.

    Raises:
        ConfigError: If translation settings are invalid
    """
    if translation_cfg.max_chars <= 0:
        raise ConfigError(f"max_chars must be positive, got {translation_cfg.max_chars}")
    if not translation_cfg.target_language:
        raise ConfigError("translation.target_language must not be empty")


def validate_synthesis_config(synthesis_cfg: SynthesisConfig) -> None:
    """Validate synthesis settings.

    Raises:
        ConfigError: If the speech rate is malformed
    """
    if not _RATE_PATTERN.match(synthesis_cfg.rate):
        raise ConfigError(
            f"Invalid rate '{synthesis_cfg.rate}'. Expected a signed percentage like -10%"
        )


def resolve_engines(engines_cfg: EnginesConfig, names: Sequence[str]) -> dict[str, str]:
    """Resolve the requested engine executables to absolute paths.

    Args:
        engines_cfg: EnginesConfig with executable names or paths
        names: EnginesConfig field names to resolve (e.g. "recorder", "whisper")

    Returns:
        Mapping of field name to resolved executable path

    Raises:
        ConfigError: If any required executable cannot be located
    """
    resolved = {}
    missing = []
    for name in names:
        executable = getattr(engines_cfg, name)
        if name == "python" and not executable:
            resolved[name] = sys.executable
            continue
        try:
            resolved[name] = str(resolve_executable(executable))
        except CommandNotFoundError as e:
            logger.debug("Engine '%s' not resolvable: %s", name, e)
            missing.append(f"{name} ({executable})")

    if missing:
        raise ConfigError(
            f"Required external tools not found: {', '.join(missing)}. "
            f"Install them or set their paths in the [engines] config section."
        )
    return resolved


def load_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from TOML file and environment.

    Convenience wrapper around Config.from_toml().

    Raises:
        ConfigError: If config cannot be loaded
    """
    return Config.from_toml(path, env=env)
