"""Copy share links to the system clipboard through the platform's tools."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import List, Optional

from .errors import ClipboardDenied

logger = logging.getLogger("share_note")


def _copy_command() -> Optional[List[str]]:
    if shutil.which("pbcopy"):
        return ["pbcopy"]
    if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
        return ["wl-copy"]
    if os.environ.get("DISPLAY"):
        if shutil.which("xclip"):
            return ["xclip", "-selection", "clipboard"]
        if shutil.which("xsel"):
            return ["xsel", "--clipboard", "--input"]
    return None


def copy_to_clipboard(text: str) -> None:
    """Place ``text`` on the clipboard or raise :class:`ClipboardDenied`."""
    command = _copy_command()
    if command is None:
        raise ClipboardDenied("No clipboard tool is available")
    try:
        subprocess.run(command, input=text, text=True, check=True, timeout=5)
    except (OSError, subprocess.SubprocessError) as exc:
        raise ClipboardDenied(f"{command[0]} failed: {exc}") from exc
    logger.debug("Copied share link with %s", command[0])
