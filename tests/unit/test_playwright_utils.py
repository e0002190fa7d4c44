import types

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from conftest import FakeClock

from school_pipeline.common import playwright_utils
from school_pipeline.common.deadline import Deadline
from school_pipeline.common.playwright_utils import (
    BrowserDriver,
    CallFailure,
    DeadlineExceeded,
    NavigationError,
    PageHandle,
    PageTimeoutError,
    classify_error,
)


class DummyLocator:
    def __init__(self, page, selector):
        self._page = page
        self._selector = selector

    @property
    def first(self):
        return self

    def dispatch_event(self, event, timeout=None):
        self._page.dispatched.append((self._selector, event, timeout))
        if self._page.click_error:
            raise self._page.click_error


class DummyPage:
    def __init__(self, *, goto_error=None, evaluate_result="ok", evaluate_error=None, click_error=None):
        self.goto_error = goto_error
        self.evaluate_result = evaluate_result
        self.evaluate_error = evaluate_error
        self.click_error = click_error
        self.goto_calls = []
        self.dispatched = []
        self.waits = []

    def goto(self, url, wait_until="domcontentloaded", timeout=0):
        self.goto_calls.append((url, wait_until, timeout))
        if self.goto_error:
            raise self.goto_error

    def wait_for_selector(self, selector, state="visible", timeout=0):  # noqa: ARG002
        return None

    def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def evaluate(self, script, arg=None):  # noqa: ARG002
        if self.evaluate_error:
            raise self.evaluate_error
        return self.evaluate_result

    def locator(self, selector):
        return DummyLocator(self, selector)

    def content(self):
        return "<html><body>ok</body></html>"


class DummyContext:
    def __init__(self, page):
        self._page = page
        self.closed = False

    def new_page(self):
        return self._page

    def close(self):
        self.closed = True


class DummyBrowser:
    def __init__(self, page):
        self._page = page
        self.contexts = []
        self.closed = False

    def new_context(self, **kwargs):
        ctx = DummyContext(self._page)
        ctx.kwargs = kwargs
        self.contexts.append(ctx)
        return ctx

    def close(self):
        self.closed = True


def _install(monkeypatch, page):
    browser = DummyBrowser(page)
    pw = types.SimpleNamespace(
        chromium=types.SimpleNamespace(launch=lambda headless=True: browser),
        stop=lambda: None,
    )
    monkeypatch.setattr(
        playwright_utils, "sync_playwright", lambda: types.SimpleNamespace(start=lambda: pw)
    )
    return browser


def _handle(page, *, page_s=120.0, run_deadline=None, clock=None):
    clock = clock or FakeClock()
    return PageHandle(
        page,
        "https://example.test",
        page_deadline=Deadline(page_s, clock=clock),
        run_deadline=run_deadline or Deadline.none(),
        call_timeout_s=15.0,
    )


def test_evaluate_success():
    result = _handle(DummyPage(evaluate_result={"a": 1})).evaluate("() => ({a: 1})")
    assert result.ok
    assert result.value == {"a": 1}


def test_evaluate_failures_are_results():
    script_err = _handle(DummyPage(evaluate_error=PlaywrightError("boom"))).evaluate("x")
    assert not script_err.ok
    assert script_err.failure is CallFailure.SCRIPT_ERROR
    assert script_err.value_or("fallback") == "fallback"

    timeout = _handle(DummyPage(evaluate_error=PlaywrightTimeoutError("slow"))).evaluate("x")
    assert timeout.failure is CallFailure.TIMEOUT


def test_classify_navigation_errors():
    err = PlaywrightError("Execution context was destroyed, most likely because of a navigation")
    assert classify_error(err) is CallFailure.NAVIGATION_FAILED


def test_click_dispatches_with_capped_timeout():
    clock = FakeClock()
    page = DummyPage()
    handle = _handle(page, run_deadline=Deadline(5.0, clock=clock), clock=clock)
    assert handle.click('[title="Wohnorte"]').ok
    selector, event, timeout = page.dispatched[0]
    assert selector == '[title="Wohnorte"]'
    assert event == "click"
    assert timeout == 5000.0


def test_expired_run_deadline_raises():
    clock = FakeClock()
    handle = _handle(DummyPage(), run_deadline=Deadline(1.0, clock=clock), clock=clock)
    clock.advance(2)
    with pytest.raises(DeadlineExceeded):
        handle.evaluate("x")


def test_spent_page_budget_raises_page_timeout():
    clock = FakeClock()
    handle = _handle(DummyPage(), page_s=10.0, clock=clock)
    clock.advance(11)
    with pytest.raises(PageTimeoutError):
        handle.pause(1.0)


def test_with_page_uses_fresh_context(monkeypatch):
    page = DummyPage(evaluate_result="Titel")
    browser = _install(monkeypatch, page)
    with BrowserDriver(settle_s=0.5, locale="de-DE") as driver:
        first = driver.with_page("https://example.test/a", lambda h: h.evaluate("t").value)
        driver.with_page("https://example.test/b", lambda h: None)
    assert first == "Titel"
    assert len(browser.contexts) == 2
    assert all(ctx.closed for ctx in browser.contexts)
    assert browser.contexts[0].kwargs == {"locale": "de-DE"}
    assert page.goto_calls[0][1] == "domcontentloaded"
    assert 500.0 in page.waits
    assert browser.closed


def test_navigation_failure(monkeypatch):
    browser = _install(monkeypatch, DummyPage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")))
    with BrowserDriver() as driver:
        with pytest.raises(NavigationError):
            driver.with_page("https://example.test", lambda h: None)
    assert browser.contexts[0].closed


def test_navigation_timeout(monkeypatch):
    _install(monkeypatch, DummyPage(goto_error=PlaywrightTimeoutError("Timeout 120000ms exceeded")))
    with BrowserDriver() as driver:
        with pytest.raises(PageTimeoutError):
            driver.with_page("https://example.test", lambda h: None)


def test_expired_deadline_before_navigation(monkeypatch):
    _install(monkeypatch, DummyPage())
    clock = FakeClock()
    deadline = Deadline(1.0, clock=clock)
    clock.advance(5)
    with BrowserDriver() as driver:
        with pytest.raises(DeadlineExceeded):
            driver.with_page("https://example.test", lambda h: None, deadline=deadline)


def test_driver_requires_start():
    with pytest.raises(RuntimeError):
        BrowserDriver().with_page("https://example.test", lambda h: None)


def test_crashed_browser_becomes_navigation_error(monkeypatch):
    browser = _install(monkeypatch, DummyPage())

    def closed(**kwargs):
        raise PlaywrightError("Target page, context or browser has been closed")

    browser.new_context = closed
    with BrowserDriver() as driver:
        with pytest.raises(NavigationError):
            driver.with_page("https://example.test", lambda h: None)


def test_failed_new_page_closes_context(monkeypatch):
    browser = _install(monkeypatch, DummyPage())
    original = browser.new_context

    def context_without_pages(**kwargs):
        ctx = original(**kwargs)

        def new_page():
            raise PlaywrightError("Browser has been closed")

        ctx.new_page = new_page
        return ctx

    browser.new_context = context_without_pages
    with BrowserDriver() as driver:
        with pytest.raises(NavigationError):
            driver.with_page("https://example.test", lambda h: None)
    assert browser.contexts[0].closed
