"""Synchronous Playwright helpers for rendering and probing detail pages.

The harvest run is strictly sequential, so the driver uses the sync API:

    with BrowserDriver(headless=True) as driver:
        record = driver.with_page(url, extract, deadline=run_deadline)

Each target page gets its own browser context (no cookies or in-page globals
leak between pages). Page-level failures are raised as ``BrowserError``
subclasses; the in-page primitives on ``PageHandle`` return ``CallResult`` so
callers have to deal with a failed lookup explicitly.
"""

from __future__ import annotations

import contextlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .deadline import Deadline

T = TypeVar("T")

logger = logging.getLogger(__name__)


# =============================================================================
# 1. ERRORS & CALL RESULTS
# =============================================================================


class BrowserError(RuntimeError):
    def __init__(self, url: str, message: str):
        super().__init__(f"{message}: {url}")
        self.url = url


class NavigationError(BrowserError):
    pass


class PageTimeoutError(BrowserError):
    pass


class DeadlineExceeded(BrowserError):
    pass


class CallFailure(str, Enum):
    TIMEOUT = "timeout"
    NAVIGATION_FAILED = "navigation_failed"
    SCRIPT_ERROR = "script_error"


@dataclass(frozen=True)
class CallResult(Generic[T]):
    value: Optional[T] = None
    failure: Optional[CallFailure] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "CallResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, failure: CallFailure, error: str) -> "CallResult[T]":
        return cls(failure=failure, error=error)

    def value_or(self, default: T) -> T:
        if self.ok and self.value is not None:
            return self.value
        return default


def classify_error(exc: Exception) -> CallFailure:
    if isinstance(exc, PlaywrightTimeoutError):
        return CallFailure.TIMEOUT
    msg = str(exc).lower()
    # Postback-driven tabs reload the document under us
    if "execution context was destroyed" in msg or "navigation" in msg or "target closed" in msg:
        return CallFailure.NAVIGATION_FAILED
    return CallFailure.SCRIPT_ERROR


# =============================================================================
# 2. PAGE HANDLE
# =============================================================================


class PageHandle:
    """In-page primitives for one rendered target page.

    Every Playwright timeout is capped by the page budget and the run deadline.
    Once either is spent, the next primitive raises PageTimeoutError or
    DeadlineExceeded instead of returning a result.
    """

    def __init__(
        self,
        page: Page,
        url: str,
        *,
        page_deadline: Deadline,
        run_deadline: Deadline,
        call_timeout_s: float,
    ) -> None:
        self._page = page
        self.url = url
        self.page_deadline = page_deadline
        self.run_deadline = run_deadline
        self.call_timeout_s = call_timeout_s

    def _timeout_ms(self, seconds: float | None = None) -> float:
        limit = self.call_timeout_s if seconds is None else seconds
        limit = self.run_deadline.cap(self.page_deadline.cap(limit))
        return max(1.0, limit * 1000.0)

    def check_budget(self) -> None:
        if self.run_deadline.expired:
            raise DeadlineExceeded(self.url, "Run deadline exceeded")
        if self.page_deadline.expired:
            raise PageTimeoutError(self.url, "Page budget exceeded")

    def _call(self, op: str, fn: Callable[[], T]) -> CallResult[T]:
        self.check_budget()
        try:
            result: CallResult[T] = CallResult.success(fn())
        except PlaywrightError as e:
            result = CallResult.failed(classify_error(e), str(e))
            logger.debug("%s failed on %s: %s", op, self.url, e)
        self.check_budget()
        return result

    def evaluate(self, script: str, arg: Any = None) -> CallResult[Any]:
        """Evaluate a JS function expression in the page and marshal its return value."""
        return self._call("evaluate", lambda: self._page.evaluate(script, arg))

    def click(self, selector: str) -> CallResult[bool]:
        """Dispatch a DOM click on the first element matching ``selector``.

        Tabs on the target site are toggled by script, so the element may not be
        "actionable" in Playwright's sense; dispatching skips those checks.
        """

        def _click() -> bool:
            self._page.locator(selector).first.dispatch_event("click", timeout=self._timeout_ms())
            return True

        return self._call("click", _click)

    def pause(self, seconds: float) -> CallResult[bool]:
        def _wait() -> bool:
            self._page.wait_for_timeout(self._timeout_ms(seconds))
            return True

        return self._call("pause", _wait)

    def content(self) -> CallResult[str]:
        return self._call("content", self._page.content)


# =============================================================================
# 3. BROWSER DRIVER
# =============================================================================


class BrowserDriver:
    """
    Owns the Playwright runtime and one Chromium instance.

    Usage:
        with BrowserDriver(headless=True, page_timeout_s=120) as driver:
            data = driver.with_page(url, lambda page: page.evaluate("() => document.title"))
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str | None = None,
        locale: str | None = None,
        page_timeout_s: float = 120.0,
        call_timeout_s: float = 15.0,
        settle_s: float = 1.0,
        ready_selector: str = "body",
    ) -> None:
        self._pw = None
        self._browser = None
        self._headless = headless
        self._user_agent = user_agent
        self._locale = locale
        self.page_timeout_s = page_timeout_s
        self.call_timeout_s = call_timeout_s
        self.settle_s = settle_s
        self.ready_selector = ready_selector

    def __enter__(self) -> "BrowserDriver":
        self._pw = sync_playwright().start()
        try:
            self._browser = self._pw.chromium.launch(headless=self._headless)
        except PlaywrightError:
            self._pw.stop()
            self._pw = None
            raise
        logger.info("Browser started", extra={"headless": self._headless})
        return self

    def __exit__(self, exc_type, exc, tb):
        with contextlib.suppress(PlaywrightError):
            if self._browser:
                self._browser.close()
        with contextlib.suppress(PlaywrightError):
            if self._pw:
                self._pw.stop()
        self._browser = None
        self._pw = None

    def _context_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {}
        if self._user_agent:
            args["user_agent"] = self._user_agent
        if self._locale:
            args["locale"] = self._locale
        return args

    @staticmethod
    def _timeout_error(url: str, run_deadline: Deadline, what: str) -> BrowserError:
        if run_deadline.expired:
            return DeadlineExceeded(url, f"Run deadline exceeded during {what}")
        return PageTimeoutError(url, f"Timed out during {what}")

    @contextmanager
    def page_session(
        self,
        url: str,
        *,
        deadline: Deadline | None = None,
        timeout_s: float | None = None,
    ) -> Iterator[PageHandle]:
        """Open an isolated context, navigate to ``url`` and yield a ready PageHandle."""
        if not self._browser:
            raise RuntimeError("BrowserDriver not started")
        run_deadline = deadline or Deadline.none()
        if run_deadline.expired:
            raise DeadlineExceeded(url, "Run deadline exceeded before navigation")
        page_deadline = Deadline(timeout_s or self.page_timeout_s)

        try:
            context = self._browser.new_context(**self._context_args())
        except PlaywrightError as e:
            raise NavigationError(url, f"Could not open browser context ({e})") from e
        try:
            try:
                page = context.new_page()
            except PlaywrightError as e:
                raise NavigationError(url, f"Could not open page ({e})") from e
            handle = PageHandle(
                page,
                url,
                page_deadline=page_deadline,
                run_deadline=run_deadline,
                call_timeout_s=self.call_timeout_s,
            )
            nav_timeout = handle._timeout_ms(page_deadline.remaining())
            try:
                page.goto(url, wait_until="domcontentloaded", timeout=nav_timeout)
                page.wait_for_selector(self.ready_selector, state="visible", timeout=nav_timeout)
            except PlaywrightTimeoutError as e:
                raise self._timeout_error(url, run_deadline, "navigation") from e
            except PlaywrightError as e:
                raise NavigationError(url, f"Navigation failed ({e})") from e
            # let client-side rendering finish
            handle.pause(self.settle_s)
            yield handle
        finally:
            with contextlib.suppress(PlaywrightError):
                context.close()

    def with_page(
        self,
        url: str,
        fn: Callable[[PageHandle], T],
        *,
        deadline: Deadline | None = None,
        timeout_s: float | None = None,
    ) -> T:
        with self.page_session(url, deadline=deadline, timeout_s=timeout_s) as page:
            return fn(page)


__all__ = [
    "BrowserDriver",
    "BrowserError",
    "CallFailure",
    "CallResult",
    "DeadlineExceeded",
    "NavigationError",
    "PageHandle",
    "PageTimeoutError",
]
