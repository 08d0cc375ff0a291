"""UI utility functions."""

import logging
import platform
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def open_folder_in_explorer(folder_path: str) -> None:
    """Reveal ``folder_path`` in the desktop file manager, creating it if needed."""
    path = Path(folder_path).resolve()
    path.mkdir(parents=True, exist_ok=True)

    openers = {"Darwin": "open", "Windows": "explorer"}
    command = openers.get(platform.system(), "xdg-open")
    try:
        subprocess.Popen([command, str(path)])  # noqa: S603
    except OSError as exc:
        logger.warning("Could not open %s with %s: %s", path, command, exc)
