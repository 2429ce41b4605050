import json

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autofill_agent import auth as auth_module
from autofill_agent.auth import (
    DEFAULT_PASSWORD_SELECTOR,
    DEFAULT_SUBMIT_SELECTOR,
    DEFAULT_USERNAME_SELECTOR,
    AuthenticationExecutor,
    normalize_cookies,
    storage_init_script,
)
from autofill_agent.events import RunLog
from autofill_agent.models import AuthenticationConfig, LogLevel

from fakes import FakePage, clicked, typed


@pytest.fixture
def sleeps(monkeypatch):
    calls = []

    async def fake_sleep(seconds):
        calls.append(seconds)

    monkeypatch.setattr(auth_module.asyncio, "sleep", fake_sleep)
    return calls


@pytest.mark.asyncio
async def test_disabled_auth_never_touches_the_page(sleeps):
    page = FakePage()
    log = RunLog()
    config = AuthenticationConfig(enabled=False, method="cookies", cookies="not json")
    await AuthenticationExecutor(log).run(page, config)
    assert page.actions == []
    assert log.events == []
    assert sleeps == []


@pytest.mark.asyncio
async def test_missing_auth_is_a_no_op():
    page = FakePage()
    await AuthenticationExecutor(RunLog()).run(page, None)
    assert page.actions == []


@pytest.mark.asyncio
async def test_manual_waits_configured_seconds(sleeps):
    config = AuthenticationConfig(enabled=True, method="manual", wait_after_login=4)
    await AuthenticationExecutor(RunLog()).run(FakePage(), config)
    assert sleeps == [4]


@pytest.mark.asyncio
async def test_manual_defaults_to_ten_seconds(sleeps):
    config = AuthenticationConfig(enabled=True, method="manual")
    await AuthenticationExecutor(RunLog()).run(FakePage(), config)
    assert sleeps == [10]


@pytest.mark.asyncio
async def test_credentials_use_default_selectors():
    page = FakePage(present=[DEFAULT_USERNAME_SELECTOR, DEFAULT_PASSWORD_SELECTOR])
    log = RunLog()
    config = AuthenticationConfig.model_validate(
        {"enabled": True, "method": "credentials", "credentials": {"username": "alice", "password": "s3cret"}}
    )
    await AuthenticationExecutor(log).run(page, config)
    assert typed(page) == [
        ("type", DEFAULT_USERNAME_SELECTOR, "alice"),
        ("type", DEFAULT_PASSWORD_SELECTOR, "s3cret"),
    ]
    assert clicked(page) == [DEFAULT_SUBMIT_SELECTOR]
    assert ("navigation", "networkidle") in page.actions
    assert log.count(LogLevel.success) == 1
    assert all("s3cret" not in event.message for event in log.events)


@pytest.mark.asyncio
async def test_credentials_use_explicit_selectors():
    page = FakePage(present=["#login", "#pw"])
    config = AuthenticationConfig.model_validate(
        {
            "enabled": True,
            "method": "credentials",
            "credentials": {
                "username": "alice",
                "password": "pw",
                "usernameSelector": "#login",
                "passwordSelector": "#pw",
                "submitSelector": "#go",
            },
        }
    )
    await AuthenticationExecutor(RunLog()).run(page, config)
    assert clicked(page) == ["#go"]


@pytest.mark.asyncio
async def test_credentials_failure_is_logged_not_raised():
    page = FakePage(present=[])
    log = RunLog()
    config = AuthenticationConfig.model_validate(
        {"enabled": True, "method": "credentials", "credentials": {"username": "alice", "password": "pw"}}
    )
    await AuthenticationExecutor(log).run(page, config)
    assert typed(page) == []
    assert log.count(LogLevel.error) == 1
    assert "credentials authentication failed" in log.events[-1].message


@pytest.mark.asyncio
async def test_credentials_navigation_timeout_is_logged():
    page = FakePage(present=[DEFAULT_USERNAME_SELECTOR, DEFAULT_PASSWORD_SELECTOR])
    page.navigation_error = PlaywrightTimeoutError("Timeout 15000ms exceeded")
    log = RunLog()
    config = AuthenticationConfig.model_validate(
        {"enabled": True, "method": "credentials", "credentials": {"username": "alice", "password": "pw"}}
    )
    await AuthenticationExecutor(log).run(page, config)
    assert log.count(LogLevel.error) == 1
    assert log.count(LogLevel.success) == 0


@pytest.mark.asyncio
async def test_credentials_without_password_are_skipped():
    page = FakePage(present=[DEFAULT_USERNAME_SELECTOR, DEFAULT_PASSWORD_SELECTOR])
    log = RunLog()
    config = AuthenticationConfig.model_validate(
        {"enabled": True, "method": "credentials", "credentials": {"username": "alice"}}
    )
    await AuthenticationExecutor(log).run(page, config)
    assert page.actions == []
    assert log.count(LogLevel.warning) == 1


@pytest.mark.asyncio
async def test_cookies_are_installed_and_page_reloaded():
    page = FakePage(url="https://app.example.com/form")
    cookies = [
        {"name": "sid", "value": "abc", "domain": ".example.com", "sameSite": "no_restriction", "hostOnly": False},
        {"name": "theme", "value": 1},
    ]
    config = AuthenticationConfig(enabled=True, method="cookies", cookies=json.dumps(cookies))
    await AuthenticationExecutor(RunLog()).run(page, config)
    assert page.context.cookies == [
        {"name": "sid", "value": "abc", "domain": ".example.com", "sameSite": "None", "path": "/"},
        {"name": "theme", "value": "1", "url": "https://app.example.com/form"},
    ]
    assert ("reload", "networkidle") in page.actions


@pytest.mark.asyncio
async def test_malformed_cookies_are_logged_and_skipped():
    page = FakePage()
    log = RunLog()
    config = AuthenticationConfig(enabled=True, method="cookies", cookies="[{broken")
    await AuthenticationExecutor(log).run(page, config)
    assert page.context.cookies == []
    assert page.actions == []
    assert log.count(LogLevel.error) == 1


def test_cookie_payload_must_be_an_array():
    with pytest.raises(ValueError):
        normalize_cookies({"name": "sid", "value": "x"}, "https://example.com")


def test_cookie_url_drops_domain_and_path():
    cookies = normalize_cookies(
        [{"name": "a", "value": "b", "url": "https://x.test", "domain": "x.test", "path": "/p", "sameSite": "lax"}],
        "https://example.com",
    )
    assert cookies == [{"name": "a", "value": "b", "url": "https://x.test", "sameSite": "Lax"}]


@pytest.mark.asyncio
async def test_session_data_is_injected_before_reload():
    page = FakePage()
    data = {"localStorage": {"token": "abc", "prefs": {"dark": True}}, "sessionStorage": {"tab": "2"}}
    config = AuthenticationConfig(enabled=True, method="session", session_data=json.dumps(data))
    await AuthenticationExecutor(RunLog()).run(page, config)
    assert len(page.init_scripts) == 2
    assert '"localStorage"' in page.init_scripts[0]
    assert '"token": "abc"' in page.init_scripts[0]
    assert '"sessionStorage"' in page.init_scripts[1]
    assert page.actions == [("reload", "networkidle")]


@pytest.mark.asyncio
async def test_malformed_session_data_is_logged_and_skipped():
    page = FakePage()
    log = RunLog()
    config = AuthenticationConfig(enabled=True, method="session", session_data="{nope")
    await AuthenticationExecutor(log).run(page, config)
    assert page.init_scripts == []
    assert page.actions == []
    assert log.count(LogLevel.error) == 1


def test_storage_script_encodes_non_string_values():
    script = storage_init_script("localStorage", {"count": 3, "name": "x"})
    assert '"count": "3"' in script
    assert '"name": "x"' in script


def test_cookie_with_null_value_is_rejected():
    with pytest.raises(ValueError):
        normalize_cookies([{"name": "sid", "value": None}], "https://example.com")


@pytest.mark.asyncio
async def test_null_cookie_value_is_logged_not_raised():
    page = FakePage()
    log = RunLog()
    config = AuthenticationConfig(enabled=True, method="cookies", cookies='[{"name": "sid", "value": null}]')
    await AuthenticationExecutor(log).run(page, config)
    assert page.context.cookies == []
    assert log.count(LogLevel.error) == 1


@pytest.mark.asyncio
async def test_unexpected_strategy_failure_is_logged():
    page = FakePage()

    async def add_cookies(cookies):
        raise RuntimeError("context is gone")

    page.context.add_cookies = add_cookies
    log = RunLog()
    config = AuthenticationConfig(enabled=True, method="cookies", cookies='[{"name": "sid", "value": "x"}]')
    await AuthenticationExecutor(log).run(page, config)
    errors = [event.message for event in log.events if event.level == LogLevel.error]
    assert errors == ["cookies authentication failed: context is gone"]
