"""Best-effort audio playback via ffplay."""

import logging
from pathlib import Path

from burmese_dub.runner import EngineError, run_command

logger = logging.getLogger(__name__)


class Player:
    """Plays a media file headlessly and deletes it afterwards."""

    def __init__(self, player_path: str = "ffplay", new_session: bool = False):
        self.player_path = player_path
        self.new_session = new_session

    def build_command(self, media_path: Path) -> list[str]:
        return [self.player_path, "-nodisp", "-autoexit", str(media_path)]

    async def play(self, media_path: Path) -> bool:
        """Play ``media_path``; player failures are logged, never raised.

        Returns:
            True if the player exited successfully
        """
        media_path = Path(media_path)
        try:
            await run_command(
                self.build_command(media_path), new_session=self.new_session
            )
            return True
        except EngineError as e:
            logger.warning("Playback of %s failed: %s", media_path.name, e)
            return False
        finally:
            media_path.unlink(missing_ok=True)
