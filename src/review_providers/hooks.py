"""
Side-effect notifications sent to UI collaborators.

Providers report two things outward: that fresh data just arrived (used by
staleness indicators) and that the token was rejected (used to start the
re-auth flow). Both are fire-and-forget; a failing listener is logged and
never disturbs the backend call that triggered it.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class StatusHooks:
    """Injected receiver for ``touch_last_updated`` / ``notify_token_expired``."""

    def __init__(self) -> None:
        self.last_updated_at: datetime | None = None
        self.token_expired = False
        self._updated_listeners: list[Listener] = []
        self._expired_listeners: list[Listener] = []

    def on_last_updated(self, listener: Listener) -> None:
        self._updated_listeners.append(listener)

    def on_token_expired(self, listener: Listener) -> None:
        self._expired_listeners.append(listener)

    def touch_last_updated(self) -> None:
        """Record that a backend call just succeeded."""
        self.last_updated_at = datetime.now(UTC)
        self._fire(self._updated_listeners, "last-updated")

    def notify_token_expired(self) -> None:
        """Record that a backend rejected the token."""
        if not self.token_expired:
            logger.warning("API token rejected; re-authentication required")
        self.token_expired = True
        self._fire(self._expired_listeners, "token-expired")

    def clear_token_expired(self) -> None:
        self.token_expired = False

    def _fire(self, listeners: list[Listener], name: str) -> None:
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.debug(f"{name} listener failed: {e}")
