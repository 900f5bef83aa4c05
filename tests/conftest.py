# tests/conftest.py
"""
In-process stand-in for Chromium + the webstream portal.

Only the slice of the Playwright async API the service touches is modelled.
A context is "logged in" while one of its cookies is in ``FakePortal.live_cookies``;
unauthenticated navigation to any page lands on the login form, like the real portal.
"""
from __future__ import annotations

import asyncio
import itertools
import uuid
from typing import Dict, List, Optional

import pytest
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webstream import settings
from webstream.browser import BrowserPool
from webstream.crypto import SecretBox
from webstream.proxy import SessionProxy
from webstream.store import MemoryStore

REGNO = "124003001"
PASSWORD = "hunter2"
CAPTCHA = "x7k2p"

LOGIN_FORM = """
<form>
  <input id="txtRegNumber"><input id="txtPwd" type="password">
  <img id="imgCaptcha" src="stickyImg"><input id="answer">
  <input type="button" id="btnLogin" value="Login">
</form>
"""
HOME_HTML = '<html><body><h3>Welcome</h3><img id="imgPhoto" src="photo.jpg"></body></html>'
ACK_HTML = '<html><body><div class="ui-state-highlight">Submitted successfully</div></body></html>'


def table(*rows, attrs: str = "") -> str:
    body = "".join("<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>" for row in rows)
    return f"<table{attrs}>{body}</table>"


def login_html(error: Optional[str] = None) -> str:
    banner = f'<div class="ui-state-error">{error}</div>' if error else ""
    return f"<html><body>{banner}{LOGIN_FORM}</body></html>"


class FakeElement:
    def __init__(self, text: str) -> None:
        self.text = text

    async def inner_text(self) -> str:
        return self.text

    async def screenshot(self) -> bytes:
        return b"PNG:" + self.text.encode()


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page, self.selector = page, selector

    async def screenshot(self) -> bytes:
        return f"captcha-{next(self.page.portal.captcha_serial)}".encode()


class FakePortal:
    def __init__(self, accounts: Dict[str, str]) -> None:
        self.accounts = dict(accounts)
        self.captcha_answer = CAPTCHA
        self.captcha_ready = True
        self.live_cookies: set = set()
        self.pages: Dict[str, str] = {}
        self.fail_urls: set = set()
        self.navigations: List[str] = []
        self.submissions: List[tuple] = []
        self.captcha_serial = itertools.count(1)

    def expire_all(self) -> None:
        self.live_cookies.clear()

    def navigations_to(self, url: str) -> int:
        return sum(1 for u in self.navigations if u == url)


class FakePage:
    def __init__(self, context: "FakeContext") -> None:
        self.context = context
        self.portal = context.portal
        self.url = "about:blank"
        self.html = "<html></html>"
        self.fields: Dict[str, str] = {}
        self.closed = False

    def _check(self) -> None:
        if self.closed or self.context.closed:
            raise PlaywrightError("Target page, context or browser has been closed")

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[int] = None):
        await asyncio.sleep(0)  # network round trip: let other tasks run
        self._check()
        if url in self.portal.fail_urls:
            raise PlaywrightTimeoutError(f"Timeout 30000ms exceeded navigating to {url}")
        self.portal.navigations.append(url)
        self.url = url
        if not self.context.authenticated:
            self.html = login_html()
        elif url == settings.PORTAL_BASE_URL:
            self.html = HOME_HTML
        else:
            self.html = self.portal.pages.get(url, "<html><body></body></html>")

    async def wait_for_function(self, expression: str, arg=None, timeout: Optional[int] = None):
        self._check()
        if not self.portal.captcha_ready or BeautifulSoup(self.html, "html.parser").select_one(arg) is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        return True

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def fill(self, selector: str, value: str) -> None:
        self._check()
        self.fields[selector] = value

    async def select_option(self, selector: str, label: str) -> None:
        self._check()
        self.fields[selector] = label

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        self._check()

    async def click(self, selector: str) -> None:
        await asyncio.sleep(0)
        self._check()
        if selector == settings.LOGIN_BUTTON:
            self._submit_login()
        elif selector == "#btnSubmit":
            self.portal.submissions.append((self.url, dict(self.fields)))
            self.html = ACK_HTML

    def _submit_login(self) -> None:
        regno = self.fields.get(settings.REGNO_INPUT)
        if self.fields.get(settings.CAPTCHA_INPUT) != self.portal.captcha_answer:
            self.html = login_html("Invalid Captcha")
        elif self.portal.accounts.get(regno) != self.fields.get(settings.PASSWORD_INPUT):
            self.html = login_html("Invalid Username or Password")
        else:
            value = uuid.uuid4().hex
            self.portal.live_cookies.add(value)
            self.context._cookies = [{
                "name": "JSESSIONID", "value": value, "domain": "webstream.sastra.edu",
                "path": "/sastrapwi", "expires": -1, "httpOnly": True, "secure": True, "sameSite": "Lax",
            }]
            self.html = HOME_HTML

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        self._check()
        node = BeautifulSoup(self.html, "html.parser").select_one(selector)
        return FakeElement(node.get_text(strip=True)) if node is not None else None

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None) -> FakeElement:
        element = await self.query_selector(selector)
        if element is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return element

    async def content(self) -> str:
        self._check()
        return self.html

    async def close(self) -> None:
        self.closed = True

    def is_closed(self) -> bool:
        return self.closed


class FakeContext:
    def __init__(self, browser: "FakeBrowser") -> None:
        self.browser = browser
        self.portal = browser.portal
        self.pages: List[FakePage] = []
        self.closed = False
        self.navigation_timeout: Optional[int] = None
        self._cookies: List[dict] = []

    @property
    def authenticated(self) -> bool:
        return any(c["value"] in self.portal.live_cookies for c in self._cookies)

    @property
    def open_pages(self) -> List[FakePage]:
        return [p for p in self.pages if not p.closed]

    def set_default_navigation_timeout(self, timeout: int) -> None:
        self.navigation_timeout = timeout

    async def new_page(self) -> FakePage:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def cookies(self) -> List[dict]:
        return [dict(c) for c in self._cookies]

    async def add_cookies(self, cookies: List[dict]) -> None:
        self._cookies.extend(dict(c) for c in cookies)

    async def close(self) -> None:
        self.closed = True
        for page in self.pages:
            page.closed = True


class FakeBrowser:
    version = "fake-chromium"

    def __init__(self, portal: FakePortal) -> None:
        self.portal = portal
        self.contexts: List[FakeContext] = []
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self) -> FakeContext:
        context = FakeContext(self)
        self.contexts.append(context)
        return context

    @property
    def open_contexts(self) -> List[FakeContext]:
        return [c for c in self.contexts if not c.closed]


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal(accounts={REGNO: PASSWORD})


@pytest.fixture
def browser(portal) -> FakeBrowser:
    return FakeBrowser(portal)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def secret_box() -> SecretBox:
    return SecretBox(bytes(range(32)))


@pytest.fixture
def proxy(browser, store, secret_box) -> SessionProxy:
    return SessionProxy(BrowserPool.from_browser(browser), store, secret_box)


@pytest.fixture
async def token(proxy) -> str:
    await proxy.issue_captcha(REGNO)
    return await proxy.login(REGNO, PASSWORD, CAPTCHA)


def restarted(proxy: SessionProxy) -> SessionProxy:
    """Same browser and store, empty in-memory tables: what a process restart looks like."""
    return SessionProxy(proxy.pool, proxy.store, proxy.secret_box)
