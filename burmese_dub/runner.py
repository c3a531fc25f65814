"""Execution of external engine processes."""

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base exception for external engine failures."""

    pass


class CommandNotFoundError(EngineError):
    """Engine executable unavailable or could not be started."""

    pass


class CommandFailedError(EngineError):
    """Engine process exited with a non-zero status."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{Path(self.cmd[0]).name} failed with exit code {returncode}"
        if stderr:
            message += f" | stderr: {stderr.strip()}"
        super().__init__(message)


def resolve_executable(name: str, project_dir: Path | None = None) -> Path:
    """Locate an executable on PATH, falling back to the project virtualenv.

    Args:
        name: Executable name or explicit path
        project_dir: Directory holding ``.venv`` (defaults to the working directory)

    Returns:
        Resolved Path to the executable

    Raises:
        CommandNotFoundError: If the executable cannot be found
    """
    found = shutil.which(name)
    if found:
        return Path(found)

    venv_candidate = (project_dir or Path.cwd()) / ".venv" / "bin" / Path(name).name
    found = shutil.which(str(venv_candidate))
    if found:
        logger.debug("Resolved %s from project virtualenv: %s", name, found)
        return Path(found)

    raise CommandNotFoundError(f"Executable '{name}' not found in PATH or .venv/bin")


async def run_command(
    cmd: Sequence[str],
    *,
    input_text: str | None = None,
    check: bool = True,
    new_session: bool = False,
) -> subprocess.CompletedProcess:
    """Run an external engine to completion without blocking the event loop.

    The process runs in the loop's default executor; the caller suspends until
    it exits. There is no timeout.

    Args:
        cmd: Command and arguments
        input_text: Text delivered on the process's standard input
        check: Raise CommandFailedError on non-zero exit
        new_session: Start the process in its own session so a terminal
            Ctrl+C aimed at this program does not reach it

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        CommandNotFoundError: If the process cannot be started
        CommandFailedError: If check is set and the process exits non-zero
    """
    cmd = [str(part) for part in cmd]
    logger.debug("Executing: %s", " ".join(cmd))

    def _run_subprocess():
        return subprocess.run(
            cmd,
            input=input_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=new_session,
        )

    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(None, _run_subprocess)
    except OSError as e:
        raise CommandNotFoundError(f"Failed to start {cmd[0]}: {e}") from e

    if check and result.returncode != 0:
        raise CommandFailedError(cmd, result.returncode, result.stderr or "")

    return result
