"""
Cooperative cancellation.

A CancelToken is checked by the retry engine before each attempt and while
it sleeps between attempts, and by a ResponseStream on every pull.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any

from gemini_ai.errors import Cancelled
from gemini_ai.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class CancelReason(str, Enum):
    """Why a call was abandoned."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


class CancelToken:
    """Cancellation flag shared between a caller and its in-flight calls.

    Example:
        >>> token = CancelToken()
        >>> stream = model.stream_generate_content("Hi", cancel_token=token)
        >>> # from another task
        >>> token.cancel()
    """

    def __init__(self, timeout: float | None = None) -> None:
        """
        Args:
            timeout: Cancel with ``CancelReason.TIMEOUT`` after this many
                seconds. The timer starts on the first ``wait`` or on
                construction inside a running loop.
        """
        self._reason: CancelReason | None = None
        self._event = asyncio.Event()
        self._listeners: list[Callable[[CancelReason], Any]] = []
        self._timeout = timeout
        self._timer: asyncio.TimerHandle | None = None
        self._arm_timer()

    def _arm_timer(self) -> None:
        if self._timeout is None or self._timer is not None or self._reason is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self._timeout, self.cancel, CancelReason.TIMEOUT)

    def cancel(self, reason: CancelReason = CancelReason.USER_REQUEST) -> bool:
        """Request cancellation.

        Returns False when the token was already cancelled; the first
        reason wins.
        """
        if self._reason is not None:
            return False

        self._reason = reason
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()

        for listener in list(self._listeners):
            self._notify(listener, reason)
        logger.debug("Cancellation requested", reason=reason.value)
        return True

    def _notify(self, listener: Callable[[CancelReason], Any], reason: CancelReason) -> None:
        try:
            outcome = listener(reason)
            if asyncio.iscoroutine(outcome):
                _ = asyncio.ensure_future(outcome)  # noqa: RUF006
        except Exception as e:
            logger.warning("Cancel callback failed", error=str(e))

    @property
    def is_cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    async def wait(self) -> CancelReason:
        """Block until the token is cancelled and return the reason."""
        self._arm_timer()
        await self._event.wait()
        return self._reason or CancelReason.USER_REQUEST

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Register a listener; it runs at once if already cancelled."""
        self._listeners.append(callback)
        if self._reason is not None:
            self._notify(callback, self._reason)
        return self

    def remove_callback(self, callback: Callable[[CancelReason], Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def to_error(self) -> Cancelled:
        """The Cancelled error reported to whoever was waiting on this token."""
        reason = self._reason.value if self._reason else None
        return Cancelled("Cancelled by caller", reason=reason)

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise self.to_error()


class CancelHandle:
    """Cancel-only view of a token, for handing to code that must not wait on it."""

    def __init__(self, token: CancelToken) -> None:
        self._token = token

    def cancel(self, reason: CancelReason = CancelReason.USER_REQUEST) -> bool:
        return self._token.cancel(reason)

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled


def create_cancel_pair(timeout: float | None = None) -> tuple[CancelHandle, CancelToken]:
    """Create a token and the handle that cancels it."""
    token = CancelToken(timeout=timeout)
    return CancelHandle(token), token
