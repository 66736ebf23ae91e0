"""Tests for retry_async and the AutomationSession lifecycle."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from leadscout.browser.retry import backoff_delay, retry_async
from leadscout.browser.session import AutomationSession
from leadscout.core.config import BrowserConfig
from leadscout.core.errors import SessionInitError, SourceUnavailable


def _fake_playwright(*, launch_error: Exception | None = None) -> tuple[MagicMock, MagicMock]:
    """Build an ``async_playwright`` replacement and the driver it starts."""
    page = MagicMock()
    page.close = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_error)
    pw.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    return MagicMock(return_value=starter), pw


# ---------------------------------------------------------------------------
# retry_async
# ---------------------------------------------------------------------------


class TestRetryAsync:
    async def test_first_attempt_succeeds(self) -> None:
        op = AsyncMock(return_value=[1, 2])
        assert await retry_async(op, "search") == [1, 2]
        op.assert_awaited_once()

    async def test_recovers_on_second_attempt(self) -> None:
        op = AsyncMock(side_effect=[TimeoutError("slow"), "ok"])
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            assert await retry_async(op, "search") == "ok"
        assert op.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    async def test_exhaustion_raises_source_unavailable(self) -> None:
        last = ConnectionError("reset")
        op = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), last])
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(SourceUnavailable, match="3 attempts") as exc_info:
                await retry_async(op, "classifieds search: cleveland lbg")

        assert exc_info.value.label == "classifieds search: cleveland lbg"
        assert exc_info.value.code == "source_unavailable"
        assert exc_info.value.__cause__ is last
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_cancellation_not_retried(self) -> None:
        op = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await retry_async(op, "search")
        op.assert_awaited_once()

    async def test_single_attempt_never_sleeps(self) -> None:
        op = AsyncMock(side_effect=RuntimeError("boom"))
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(SourceUnavailable):
                await retry_async(op, "search", attempts=1)
        sleep.assert_not_awaited()

    def test_backoff_is_linear(self) -> None:
        assert [backoff_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]
        assert backoff_delay(2, 0.5) == 1.0
        assert backoff_delay(3, -1.0) == 0.0


# ---------------------------------------------------------------------------
# AutomationSession
# ---------------------------------------------------------------------------


class TestAutomationSession:
    async def test_initialize_is_idempotent(self) -> None:
        factory, pw = _fake_playwright()
        with patch("leadscout.browser.session.async_playwright", factory):
            session = AutomationSession(BrowserConfig(timeout_ms=5000))
            await session.initialize()
            await session.initialize()

        assert session.is_ready()
        assert session.page is not None
        pw.chromium.launch.assert_awaited_once()
        context = pw.chromium.launch.return_value.new_context.return_value
        context.set_default_timeout.assert_called_once_with(5000)

    async def test_page_before_initialize_raises(self) -> None:
        session = AutomationSession()
        assert not session.is_ready()
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = session.page

    async def test_launch_failure_raises_session_init_error(self) -> None:
        factory, pw = _fake_playwright(launch_error=RuntimeError("no chromium"))
        with patch("leadscout.browser.session.async_playwright", factory):
            session = AutomationSession()
            with pytest.raises(SessionInitError, match="no chromium") as exc_info:
                await session.initialize()

        assert exc_info.value.code == "session_init_failed"
        # The driver started before the failure is released
        pw.stop.assert_awaited_once()
        assert not session.is_ready()

    async def test_cleanup_swallows_close_errors(self) -> None:
        factory, pw = _fake_playwright()
        with patch("leadscout.browser.session.async_playwright", factory):
            session = AutomationSession()
            await session.initialize()
        session.page.close.side_effect = RuntimeError("already closed")

        await session.cleanup()

        pw.stop.assert_awaited_once()
        assert not session.is_ready()

    async def test_cleanup_without_initialize(self) -> None:
        await AutomationSession().cleanup()

    async def test_context_manager_cleans_up_on_error(self) -> None:
        factory, pw = _fake_playwright()
        with patch("leadscout.browser.session.async_playwright", factory):
            with pytest.raises(ValueError, match="adapter bug"):
                async with AutomationSession() as session:
                    assert session.is_ready()
                    raise ValueError("adapter bug")

        pw.chromium.launch.return_value.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    async def test_execute_with_retry_uses_config(self) -> None:
        session = AutomationSession(BrowserConfig(retry_attempts=2, retry_base_delay=0.5))
        op = AsyncMock(side_effect=OSError("net"))
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(SourceUnavailable, match="2 attempts"):
                await session.execute_with_retry(op, "detail")
        assert op.await_count == 2
        sleep.assert_awaited_once_with(0.5)
