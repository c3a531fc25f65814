"""Typer CLI entrypoint for burmese-dub."""

import asyncio
import dataclasses
import json
import logging
import os
from pathlib import Path

import typer

from burmese_dub._types import RunSummary
from burmese_dub.config import (
    Config,
    ConfigError,
    load_config,
    load_environment,
    resolve_engines,
    resolve_voice,
)
from burmese_dub.dubber import DubError, Dubber, is_url
from burmese_dub.orchestrator import Orchestrator
from burmese_dub.pipeline import ChunkPipeline
from burmese_dub.player import Player
from burmese_dub.recorder import CaptureError, ChunkRecorder, list_capture_devices
from burmese_dub.synthesizer import Synthesizer
from burmese_dub.transcriber import Transcriber
from burmese_dub.translator import Translator

app = typer.Typer(help="Live and batch English speech dubbing into Burmese")

logger = logging.getLogger(__name__)

LIVE_ENGINES = ("recorder", "whisper", "python", "edge_tts", "player")
DUB_ENGINES = ("whisper", "python", "edge_tts", "ffmpeg")


def _setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _merge_config_overrides(
    cfg: Config,
    *,
    chunk_duration: int | None = None,
    max_in_flight: int | None = None,
    voice: str | None = None,
    output_root: Path | None = None,
) -> Config:
    """Apply CLI overrides to configuration.

    CLI options take precedence over config file and environment values.
    """
    if chunk_duration is not None:
        logger.debug("Overriding chunk duration to %ds", chunk_duration)
        cfg = dataclasses.replace(
            cfg, audio=dataclasses.replace(cfg.audio, chunk_duration=chunk_duration)
        )

    if max_in_flight is not None:
        logger.debug("Overriding max_in_flight to %d", max_in_flight)
        cfg = dataclasses.replace(
            cfg,
            orchestrator=dataclasses.replace(cfg.orchestrator, max_in_flight=max_in_flight),
        )

    if voice is not None:
        resolved = resolve_voice(voice)
        logger.debug("Overriding voice to %s", resolved.value)
        cfg = dataclasses.replace(
            cfg, synthesis=dataclasses.replace(cfg.synthesis, voice=resolved)
        )

    if output_root is not None:
        cfg = dataclasses.replace(
            cfg, dub=dataclasses.replace(cfg.dub, output_root=str(output_root))
        )

    return cfg


def _build_stages(
    cfg: Config, engines: dict[str, str], new_session: bool = False
) -> tuple[Transcriber, Translator, Synthesizer]:
    transcriber = Transcriber(
        whisper_path=engines["whisper"],
        language=cfg.translation.source_language,
        new_session=new_session,
    )
    translator = Translator(
        python_path=engines["python"],
        source_language=cfg.translation.source_language,
        target_language=cfg.translation.target_language,
        max_chars=cfg.translation.max_chars,
        new_session=new_session,
    )
    synthesizer = Synthesizer(
        edge_tts_path=engines["edge_tts"],
        voice=cfg.synthesis.voice,
        rate=cfg.synthesis.rate,
        new_session=new_session,
    )
    return transcriber, translator, synthesizer


async def _run_live(orchestrator: Orchestrator) -> RunSummary:
    orchestrator.install_signal_handlers()
    try:
        return await orchestrator.run()
    finally:
        orchestrator.remove_signal_handlers()


@app.command()
def live(
    config: Path | None = typer.Option(
        None, "--config", help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
    chunk_duration: int | None = typer.Option(
        None, "--chunk-duration", "-d", help="Override seconds of audio per chunk"
    ),
    max_in_flight: int | None = typer.Option(
        None, "--max-in-flight", help="Override concurrent chunk limit (0 = unbounded)"
    ),
    voice: str | None = typer.Option(
        None, "--voice", help="Override voice presenter (men, women)"
    ),
) -> None:
    """Translate live English speech into spoken Burmese until interrupted."""
    _setup_logging(verbose)
    try:
        load_environment()
        cfg = load_config(config)
        if cfg.general.verbose:
            logging.getLogger().setLevel(logging.DEBUG)
        cfg = _merge_config_overrides(
            cfg,
            chunk_duration=chunk_duration,
            max_in_flight=max_in_flight,
            voice=voice,
        )
        cfg.validate()
        engines = resolve_engines(cfg.engines, LIVE_ENGINES)

        recorder = ChunkRecorder(
            recorder_path=engines["recorder"],
            sample_rate=cfg.audio.sample_rate,
            channels=cfg.audio.channels,
            device=cfg.audio.device,
            new_session=True,
        )
        transcriber, translator, synthesizer = _build_stages(
            cfg, engines, new_session=True
        )
        pipeline = ChunkPipeline(
            transcriber=transcriber,
            translator=translator,
            synthesizer=synthesizer,
            player=Player(engines["player"], new_session=True),
            silence_threshold=cfg.audio.silence_threshold,
        )
        orchestrator = Orchestrator(
            recorder=recorder,
            pipeline=pipeline,
            config=cfg.orchestrator,
            chunk_duration=cfg.audio.chunk_duration,
        )

        logger.info("Voice: %s", cfg.synthesis.voice.value)
        logger.info("Speak English; press Ctrl+C to stop")
        summary = asyncio.run(_run_live(orchestrator))
        logger.info("Done (%d chunks processed)", summary.chunks_processed)

    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        raise typer.Exit(0)
    except RuntimeError as e:
        logger.error("Startup error: %s", e)
        raise typer.Exit(1)
    except Exception as e:
        logger.error("Unexpected error: %s", e, exc_info=True)
        raise typer.Exit(1)


@app.command()
def dub(
    source: str | None = typer.Argument(
        None, help="Video file or URL (defaults to DOWNLOAD_YOUTUBE_URL)"
    ),
    config: Path | None = typer.Option(
        None, "--config", help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
    output_root: Path | None = typer.Option(
        None, "--output-root", "-o", help="Override output root directory"
    ),
    voice: str | None = typer.Option(
        None, "--voice", help="Override voice presenter (men, women)"
    ),
) -> None:
    """Dub a video file or URL into Burmese."""
    _setup_logging(verbose)
    try:
        load_environment()
        source = source or _env_source()
        cfg = load_config(config)
        if cfg.general.verbose:
            logging.getLogger().setLevel(logging.DEBUG)
        cfg = _merge_config_overrides(cfg, voice=voice, output_root=output_root)
        cfg.validate()

        names = DUB_ENGINES + (("yt_dlp",) if is_url(source) else ())
        engines = resolve_engines(cfg.engines, names)
        transcriber, translator, synthesizer = _build_stages(cfg, engines)
        dubber = Dubber(
            transcriber=transcriber,
            translator=translator,
            synthesizer=synthesizer,
            ffmpeg_path=engines["ffmpeg"],
            yt_dlp_path=engines.get("yt_dlp"),
            output_root=cfg.dub.output_root,
        )

        result = asyncio.run(dubber.dub(source))
        typer.echo(str(result.output_video))

    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        raise typer.Exit(1)
    except DubError as e:
        logger.error("%s", e)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        raise typer.Exit(130)
    except Exception as e:
        logger.error("Unexpected error: %s", e, exc_info=True)
        raise typer.Exit(1)


def _env_source() -> str:
    url = os.environ.get("DOWNLOAD_YOUTUBE_URL", "")
    if not url:
        raise ConfigError("No source given and DOWNLOAD_YOUTUBE_URL is not set")
    return url


@app.command()
def list_audio(
    config: Path | None = typer.Option(
        None, "--config", help="Path to configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    json_output: bool = typer.Option(
        False, "--json", help="Output as JSON instead of table"
    ),
) -> None:
    """List capture devices usable as the [audio] device setting."""
    _setup_logging(verbose)
    try:
        load_environment()
        cfg = load_config(config)
        engines = resolve_engines(cfg.engines, ("recorder",))
        devices = asyncio.run(list_capture_devices(engines["recorder"]))
        if not devices:
            logger.warning("No capture devices found")
            return

        if json_output:
            typer.echo(json.dumps(devices, indent=2))
        else:
            typer.echo("Available capture devices (set one as [audio] device):")
            for dev in devices:
                typer.echo(f"  {dev['name']}")
                if dev["description"]:
                    typer.echo(f"      {dev['description']}")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        raise typer.Exit(1)
    except CaptureError as e:
        logger.error("Error listing capture devices: %s", e)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
