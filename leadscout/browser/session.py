"""Automation session management using patchright.

Rules:
  - One browser + context + page per session, owned by exactly one pipeline run
  - cleanup() is safe after a partial initialize() and never raises
  - All retries go through execute_with_retry()
"""

import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, TypeVar

from patchright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from leadscout.browser.retry import retry_async
from leadscout.core.config import BrowserConfig
from leadscout.core.errors import SessionInitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--disable-gpu",
]


class AutomationSession:
    """Owns one patchright browser lifecycle and shields adapters from transient failures.

    Usage::

        async with AutomationSession(config) as session:
            page = session.page
            rows = await session.execute_with_retry(lambda: fetch(page), "search")
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._initialized = False

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def page(self) -> Any:
        """The single page for this session. Raises if not initialized."""
        if self._page is None or not self._initialized:
            msg = "AutomationSession not initialized - call initialize() first"
            raise RuntimeError(msg)
        return self._page

    def is_ready(self) -> bool:
        return self._initialized and self._page is not None

    async def initialize(self) -> None:
        """Start the browser engine. A second call on a ready session is a no-op."""
        if self._initialized:
            return

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                timeout=self._config.timeout_ms,
                args=_LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(user_agent=self._config.user_agent)
            self._context.set_default_timeout(self._config.timeout_ms)
            self._page = await self._context.new_page()
        except Exception as e:
            logger.error("Automation session failed to start: %s", e)
            await self.cleanup()
            msg = f"Automation engine failed to start: {e}"
            raise SessionInitError(msg) from e

        self._initialized = True
        logger.info("Automation session initialized (headless=%s)", self._config.headless)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
    ) -> T:
        """Run ``operation`` with the configured attempts and backoff."""
        return await retry_async(
            operation,
            label,
            attempts=self._config.retry_attempts,
            base_delay=self._config.retry_base_delay,
        )

    async def cleanup(self) -> None:
        """Release every acquired resource, in reverse order of acquisition."""
        closers: list[tuple[str, Any]] = [
            ("page", self._page.close if self._page is not None else None),
            ("context", self._context.close if self._context is not None else None),
            ("browser", self._browser.close if self._browser is not None else None),
            ("driver", self._playwright.stop if self._playwright is not None else None),
        ]
        for name, close in closers:
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.warning("Failed to close %s during cleanup", name, exc_info=True)

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        self._initialized = False
        logger.debug("Automation session cleaned up")

    async def __aenter__(self) -> "AutomationSession":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.cleanup()
