"""Tests for cancel module."""

import asyncio

import pytest

from gemini_ai.client import (
    CancelHandle,
    CancelReason,
    CancelToken,
    create_cancel_pair,
)
from gemini_ai.errors import Cancelled, ErrorKind


class TestCancelToken:
    """Tests for CancelToken."""

    def test_initial_state(self) -> None:
        """Test initial token state."""
        token = CancelToken()
        assert token.is_cancelled is False
        assert token.reason is None

    def test_cancel(self) -> None:
        """Test cancellation."""
        token = CancelToken()
        result = token.cancel(CancelReason.USER_REQUEST)

        assert result is True
        assert token.is_cancelled is True
        assert token.reason == CancelReason.USER_REQUEST

    def test_cancel_twice(self) -> None:
        """Test cancelling twice returns False."""
        token = CancelToken()
        assert token.cancel() is True
        assert token.cancel(CancelReason.SHUTDOWN) is False
        assert token.reason == CancelReason.USER_REQUEST

    def test_to_error(self) -> None:
        """Test the Cancelled error carries the reason."""
        token = CancelToken()
        token.cancel(CancelReason.SHUTDOWN)
        error = token.to_error()
        assert isinstance(error, Cancelled)
        assert error.kind == ErrorKind.CANCELLED
        assert error.reason == "shutdown"

    def test_raise_if_cancelled(self) -> None:
        """Test raise_if_cancelled only raises after cancel."""
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(Cancelled):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_wait(self) -> None:
        """Test waiting for cancellation."""
        token = CancelToken()

        async def cancel_later():
            await asyncio.sleep(0.01)
            token.cancel(CancelReason.USER_REQUEST)

        task = asyncio.create_task(cancel_later())
        reason = await token.wait()
        await task

        assert reason == CancelReason.USER_REQUEST

    @pytest.mark.asyncio
    async def test_auto_timeout(self) -> None:
        """Test a token with a timeout cancels itself."""
        token = CancelToken(timeout=0.01)
        reason = await asyncio.wait_for(token.wait(), timeout=2)
        assert reason == CancelReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_manual_cancel_keeps_reason_over_timeout(self) -> None:
        """Test the deadline does not overwrite an earlier cancel."""
        token = CancelToken(timeout=0.01)
        token.cancel(CancelReason.SHUTDOWN)
        await asyncio.sleep(0.03)
        assert token.reason == CancelReason.SHUTDOWN

    def test_callbacks(self) -> None:
        """Test callbacks run on cancel and immediately when already cancelled."""
        token = CancelToken()
        seen: list[CancelReason] = []
        token.on_cancel(seen.append)
        token.cancel(CancelReason.TIMEOUT)
        token.on_cancel(seen.append)
        assert seen == [CancelReason.TIMEOUT, CancelReason.TIMEOUT]

    def test_failing_callback_is_logged(self, caplog) -> None:
        """Test a failing callback does not prevent cancellation."""
        token = CancelToken()

        def broken(reason):
            raise RuntimeError("callback bug")

        token.on_cancel(broken)
        assert token.cancel() is True
        assert token.is_cancelled
        assert "Cancel callback failed" in caplog.text

    def test_remove_callback(self) -> None:
        """Test removed callbacks are not called."""
        token = CancelToken()
        seen: list[CancelReason] = []
        token.on_cancel(seen.append)
        token.remove_callback(seen.append)
        token.cancel()
        assert seen == []


class TestCancelPair:
    """Tests for handle/token pairs."""

    def test_handle_cancels_token(self) -> None:
        """Test the handle drives the token."""
        handle, token = create_cancel_pair()
        assert isinstance(handle, CancelHandle)
        assert handle.is_cancelled is False
        assert handle.cancel() is True
        assert token.is_cancelled
        assert handle.is_cancelled
