"""Clipboard sink for the relay.

Uses pyperclip for cross-platform clipboard access.
"""

from __future__ import annotations

import pyperclip

from .exceptions import ClipboardError


def copy_to_clipboard(text: str) -> None:
    """Copy text to the system clipboard.

    Args:
        text: The text to copy.

    Raises:
        ClipboardError: If clipboard access fails.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(str(e)) from e
