"""Point the reviewer at a freshly started session."""

from __future__ import annotations

import logging
import webbrowser

logger = logging.getLogger(__name__)


def open_browser(url: str) -> bool:
    """Open ``url`` in the default browser. Returns False if no browser could be launched."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.warning("Could not open browser for %s: %s", url, e)
        return False
    if not opened:
        logger.info("No browser available; open %s manually", url)
    return bool(opened)


def handle_server_ready(url: str, is_remote: bool, should_open: bool = True) -> bool:
    """Launch the browser for local sessions.

    Remote sessions run on a machine the reviewer is not sitting at, so the
    caller prints the URL instead. Returns True when a browser was launched.
    """
    if is_remote or not should_open:
        return False
    return open_browser(url)
