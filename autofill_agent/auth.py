from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .errors import AuthStepError
from .events import RunLog
from .models import AuthenticationConfig, AuthMethod

logger = logging.getLogger(__name__)

SELECTOR_TIMEOUT = int(1000 * float(os.environ.get("AUTOFILL_SELECTOR_TIMEOUT_SECONDS", "10")))
NAVIGATION_TIMEOUT = int(1000 * float(os.environ.get("AUTOFILL_NAVIGATION_TIMEOUT_SECONDS", "15")))
DEFAULT_MANUAL_WAIT_SECONDS = 10

DEFAULT_USERNAME_SELECTOR = 'input[name="username"], input[name="email"], #username, #email'
DEFAULT_PASSWORD_SELECTOR = 'input[name="password"], #password'
DEFAULT_SUBMIT_SELECTOR = 'button[type="submit"], input[type="submit"], .login-button'

COOKIE_KEYS = ("name", "value", "url", "domain", "path", "expires", "httpOnly", "secure", "sameSite")
_SAME_SITE = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
    "no_restriction": "None",
}

# Runs before any page script on every subsequent load of the page.
_STORAGE_INIT_SCRIPT = """
((storageName, entries) => {
    const storage = window[storageName];
    for (const [key, value] of Object.entries(entries)) {
        storage.setItem(key, value);
    }
})(%s, %s);
"""


def normalize_cookies(raw: Any, page_url: str) -> List[Dict[str, Any]]:
    """Turn browser-exported cookie descriptors into Playwright cookie dicts."""
    if not isinstance(raw, list):
        raise ValueError("cookies must be a JSON array")
    cookies = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("name") or item.get("value") is None:
            raise ValueError("each cookie needs a name and a value")
        cookie = {key: item[key] for key in COOKIE_KEYS if item.get(key) is not None}
        cookie["value"] = str(cookie["value"])
        same_site = _SAME_SITE.get(str(cookie.pop("sameSite", "")).lower())
        if same_site:
            cookie["sameSite"] = same_site
        if "url" in cookie:
            # Playwright rejects url combined with domain/path
            cookie.pop("domain", None)
            cookie.pop("path", None)
        elif "domain" not in cookie:
            cookie["url"] = page_url
        elif "path" not in cookie:
            cookie["path"] = "/"
        cookies.append(cookie)
    return cookies


def storage_init_script(storage_name: str, entries: Dict[str, Any]) -> str:
    values = {
        str(key): value if isinstance(value, str) else json.dumps(value)
        for key, value in entries.items()
    }
    return _STORAGE_INIT_SCRIPT % (json.dumps(storage_name), json.dumps(values))


class AuthenticationExecutor:
    """Runs the configured login strategy ahead of the fill phase.

    Failures are logged to the run log and never propagate: the page may
    already be usable, so the fill phase always runs afterwards.
    """

    def __init__(self, log: RunLog) -> None:
        self._log = log
        self._strategies = {
            AuthMethod.manual: self._manual,
            AuthMethod.credentials: self._credentials,
            AuthMethod.cookies: self._cookies,
            AuthMethod.session: self._session,
        }

    async def run(self, page: Page, auth: Optional[AuthenticationConfig]) -> None:
        if auth is None or not auth.enabled:
            return
        self._log.info(f"Authentication is enabled, processing {auth.method.value} login...")
        try:
            await self._strategies[auth.method](page, auth)
        except AuthStepError as exc:
            self._log.error(str(exc))
        except Exception as exc:
            logger.exception("Unexpected %s authentication failure", auth.method.value)
            self._log.error(str(AuthStepError(auth.method.value, str(exc) or type(exc).__name__)))

    async def _manual(self, page: Page, auth: AuthenticationConfig) -> None:
        seconds = auth.wait_after_login if auth.wait_after_login is not None else DEFAULT_MANUAL_WAIT_SECONDS
        self._log.info(f"Manual login mode - waiting {seconds} seconds for the user to login...")
        await asyncio.sleep(seconds)
        self._log.success("Manual login wait completed")

    async def _credentials(self, page: Page, auth: AuthenticationConfig) -> None:
        creds = auth.credentials
        if creds is None or not creds.username or not creds.password:
            self._log.warning("Credentials login skipped: username and password are required")
            return
        username_selector = creds.username_selector or DEFAULT_USERNAME_SELECTOR
        password_selector = creds.password_selector or DEFAULT_PASSWORD_SELECTOR
        submit_selector = creds.submit_selector or DEFAULT_SUBMIT_SELECTOR
        try:
            await page.wait_for_selector(username_selector, state="attached", timeout=SELECTOR_TIMEOUT)
            await page.wait_for_selector(password_selector, state="attached", timeout=SELECTOR_TIMEOUT)
            self._log.info(f"Filling username: {creds.username}", selector=username_selector)
            await page.type(username_selector, creds.username)
            self._log.info("Filling password...", selector=password_selector)
            await page.type(password_selector, creds.password)
            self._log.info("Submitting login form...", selector=submit_selector)
            async with page.expect_navigation(wait_until="networkidle", timeout=NAVIGATION_TIMEOUT):
                await page.click(submit_selector)
        except PlaywrightError as exc:
            raise AuthStepError(AuthMethod.credentials.value, str(exc)) from exc
        self._log.success("Login completed successfully")

    async def _cookies(self, page: Page, auth: AuthenticationConfig) -> None:
        if not auth.cookies:
            self._log.warning("Cookies login skipped: no cookies provided")
            return
        try:
            cookies = normalize_cookies(json.loads(auth.cookies), page.url)
        except ValueError as exc:
            raise AuthStepError(AuthMethod.cookies.value, f"invalid cookies: {exc}") from exc
        try:
            await page.context.add_cookies(cookies)
            self._log.info(f"Set {len(cookies)} cookies")
            await page.reload(wait_until="networkidle")
        except PlaywrightError as exc:
            raise AuthStepError(AuthMethod.cookies.value, str(exc)) from exc
        self._log.success("Page reloaded with cookies")

    async def _session(self, page: Page, auth: AuthenticationConfig) -> None:
        if not auth.session_data:
            self._log.warning("Session login skipped: no session data provided")
            return
        try:
            data = json.loads(auth.session_data)
        except ValueError as exc:
            raise AuthStepError(AuthMethod.session.value, f"invalid session data: {exc}") from exc
        if not isinstance(data, dict):
            raise AuthStepError(AuthMethod.session.value, "session data must be a JSON object")
        try:
            for storage_name in ("localStorage", "sessionStorage"):
                entries = data.get(storage_name)
                if not entries:
                    continue
                if not isinstance(entries, dict):
                    raise AuthStepError(AuthMethod.session.value, f"{storage_name} must be an object")
                await page.add_init_script(storage_init_script(storage_name, entries))
                self._log.info(f"Queued {len(entries)} {storage_name} entries")
            await page.reload(wait_until="networkidle")
        except PlaywrightError as exc:
            raise AuthStepError(AuthMethod.session.value, str(exc)) from exc
        self._log.success("Page reloaded with session data")
