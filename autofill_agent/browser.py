from __future__ import annotations

import asyncio
import base64
import logging
import os
from typing import List, Optional, Tuple

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .auth import AuthenticationExecutor
from .capture import capture_result
from .detector import build_fields, detect_fields
from .errors import FatalLaunchError
from .events import RunLog
from .filler import FillExecutor
from .models import AutomationConfig, AutomationResult, DetectedField, DetectRequest, ElementSnapshot
from .sessions import BrowserSession

logger = logging.getLogger(__name__)

PAGE_LOAD_TIMEOUT = int(1000 * float(os.environ.get("AUTOFILL_PAGE_LOAD_TIMEOUT_SECONDS", "30")))
DETECT_SETTLE_SECONDS = float(os.environ.get("AUTOFILL_DETECT_SETTLE_SECONDS", "2"))
HEADLESS = os.environ.get("AUTOFILL_HEADLESS", "false").lower() == "true"
VIEWPORT = {"width": 1280, "height": 720}
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-setuid-sandbox",
]

RunOutcome = Tuple[AutomationResult, BrowserSession]


class BrowserRunner:
    async def detect(self, request: DetectRequest) -> List[DetectedField]:
        raise NotImplementedError

    async def automate(self, config: AutomationConfig) -> RunOutcome:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


# 1x1 transparent PNG
_BLANK_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

_FAKE_LOGIN_FORM = [
    ElementSnapshot(tag="input", id="email", name="email", type="email", label="Email"),
    ElementSnapshot(tag="input", name="password", type="password", label="Password"),
    ElementSnapshot(tag="input", type="checkbox", classes=["remember-me"], label="Remember me"),
    ElementSnapshot(tag="button", type="submit", text="Sign in", same_tag_index=1),
]


class FakeBrowserRunner(BrowserRunner):
    """Lightweight stub used in tests or constrained environments."""

    async def detect(self, request: DetectRequest) -> List[DetectedField]:
        return build_fields(_FAKE_LOGIN_FORM)

    async def automate(self, config: AutomationConfig) -> RunOutcome:
        log = RunLog(logger)
        log.info(f"Navigating to: {config.url} (fake-browser)")
        for field in config.fields:
            log.success(f'Successfully filled field: {field.selector} with value: "{field.value}"', field.selector)
        session = BrowserSession(url=config.url)
        result = AutomationResult(
            message="Form automation completed successfully. Browser remains open.",
            fields_processed=len(config.fields),
            screenshot=base64.b64encode(_BLANK_PNG).decode(),
            session_id=session.session_id,
            logs=log.events,
        )
        return result, session

    async def close(self) -> None:
        return None


class PlaywrightBrowserRunner(BrowserRunner):
    """Runs every request in its own Chromium instance on a shared Playwright driver."""

    def __init__(self, headless: bool = HEADLESS) -> None:
        self._playwright: Optional[Playwright] = None
        self._headless = headless
        self._lock = asyncio.Lock()

    async def _ensure_playwright(self) -> Playwright:
        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            return self._playwright

    async def _launch(self, headless: bool) -> Browser:
        playwright = await self._ensure_playwright()
        return await playwright.chromium.launch(headless=headless, args=LAUNCH_ARGS)

    async def _open(self, browser: Browser, url: str) -> Page:
        context = await browser.new_context(viewport=VIEWPORT)
        page = await context.new_page()
        await page.goto(url, wait_until="networkidle", timeout=PAGE_LOAD_TIMEOUT)
        return page

    async def detect(self, request: DetectRequest) -> List[DetectedField]:
        browser: Optional[Browser] = None
        try:
            try:
                browser = await self._launch(headless=True)
                page = await self._open(browser, request.url)
            except PlaywrightError as exc:
                raise FatalLaunchError("Failed to detect form fields", str(exc)) from exc
            await asyncio.sleep(DETECT_SETTLE_SECONDS)
            return await detect_fields(page)
        finally:
            if browser:
                await browser.close()

    async def automate(self, config: AutomationConfig) -> RunOutcome:
        log = RunLog(logger)
        browser: Optional[Browser] = None
        keep_open = False
        try:
            browser = await self._launch(headless=self._headless)
            log.info(f"Navigating to: {config.url}")
            page = await self._open(browser, config.url)
            log.success("Page loaded successfully")

            await AuthenticationExecutor(log).run(page, config.authentication)

            if config.load_delay > 0:
                log.info(f"Waiting for {config.load_delay} seconds...")
                await asyncio.sleep(config.load_delay)
                log.info("Delay completed")

            processed = await FillExecutor(log).fill(page, config.fields)
            session = BrowserSession(url=config.url, browser=browser, page=page)
            result = await capture_result(page, processed, log, session.session_id)
            keep_open = True
            return result, session
        except Exception as exc:
            logger.exception("Automation of %s failed", config.url)
            log.error(f"Automation error: {exc}")
            raise FatalLaunchError("Automation failed", str(exc) or type(exc).__name__) from exc
        finally:
            # the browser stays open for inspection only after a complete run
            if browser and not keep_open:
                await browser.close()

    async def close(self) -> None:
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
