"""
Best-effort browser launching.
"""

import logging
import webbrowser


logger = logging.getLogger(__name__)


def open_url(url: str) -> bool:
    """
    Open a URL in the user's default browser.

    Returns:
        True if a browser was launched, False otherwise. Failure is never fatal.
    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.debug(f"Browser launch failed: {e}")
        return False
    return bool(opened)
