"""External browser launcher.

The SSO flow hands the authorization URL to a launcher and does not wait
for it: the browser is a process outside ccauth's control, and the only
way back is the redirect delivered through
:class:`~ccauth.deeplink.DeepLinkDispatcher`.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Callable

logger = logging.getLogger(__name__)

BrowserLauncher = Callable[[str], None]
"""Signature of a launcher: takes a URL, returns immediately."""


def open_external(url: str) -> None:
    """Open *url* in the user's default browser without blocking."""
    logger.debug("Opening browser at %s", url)
    # webbrowser.open can block on some platforms
    thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
    thread.start()
