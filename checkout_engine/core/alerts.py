"""
User-facing alerts.

Business rejections (success=false) are shown to the shopper through an
injected hook. Without a hook the message is logged at WARNING.
"""
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

AlertHook = Callable[[str], None]


class Alerter:
    """Delivers a message through the hook, or the log when there is none."""

    def __init__(self, hook: Optional[AlertHook] = None):
        self._hook = hook

    def __call__(self, message: str) -> None:
        if self._hook is None:
            logger.warning(f"[ALERT] {message}")
            return
        try:
            self._hook(message)
        except Exception as e:
            logger.error(f"[ALERT] Alert hook failed ({e}); message was: {message}")


def alert_message(message: Optional[str], fallback: str) -> str:
    """Server message when present, otherwise the generic fallback."""
    if message and message.strip():
        return message
    return fallback
