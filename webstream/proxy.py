# webstream/proxy.py
"""
Token ⇄ browser-context proxy for the webstream portal.

The portal has no API, so an authenticated user *is* a live BrowserContext.
``SessionProxy`` owns the whole lifecycle:

  issue_captcha          fresh context → login page → CAPTCHA png
  login                  fill form in the pending page → token
  resolve                token → context (memory, else rebuilt from activeSessions)
  issue_relogin_captcha  CAPTCHA on the *same* context of an existing session
  relogin                resubmit with the stored secret → rotated token
  logout                 close context, forget token everywhere

Challenge and finalize calls are serialized per registration number, and
reconstruction per token.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import Any, Dict, Optional

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from . import settings
from .browser import BrowserPool, close_quietly
from .crypto import SecretBox
from .errors import (BrowserNotReady, ChallengeNotFound, CredentialNotFound, LoginRejected,
                     PortalUnavailable, ReloginRequired, SessionNotFound)
from .sessions import (ActiveSession, ChallengeTable, ExpiredSession, InMemoryTable,
                       KeyedLocks, PendingChallenge, ResolvedSession, SessionTable)
from .store import ACTIVE_SESSIONS, USERS, DocumentStore, now_iso

logger = logging.getLogger(__name__)

# true once the captcha <img> has actually decoded (naturalWidth stays 0 until then)
CAPTCHA_RENDERED = """sel => {
    const img = document.querySelector(sel);
    return !!img && img.complete && img.naturalWidth > 0;
}"""


class SessionProxy:
    def __init__(
        self,
        pool: BrowserPool,
        store: DocumentStore,
        secret_box: Optional[SecretBox] = None,
        sessions: Optional[SessionTable] = None,
        challenges: Optional[ChallengeTable] = None,
        captcha_timeout: int = settings.CAPTCHA_TIMEOUT_MS,
    ) -> None:
        self.pool = pool
        self.store = store
        self.secret_box = secret_box
        self.sessions: SessionTable = sessions if sessions is not None else InMemoryTable()
        self.challenges: ChallengeTable = challenges if challenges is not None else InMemoryTable()
        self.captcha_timeout = captcha_timeout
        self._identifier_locks = KeyedLocks()
        self._token_locks = KeyedLocks()

    # ---------------------- store helpers ----------------------
    async def store_get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self.store.get, collection, key)

    async def store_set(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        await asyncio.to_thread(self.store.set, collection, key, data, merge)

    async def store_delete(self, collection: str, key: str) -> None:
        await asyncio.to_thread(self.store.delete, collection, key)

    # ---------------------- CAPTCHA ----------------------
    async def _capture_captcha(self, page: Page) -> bytes:
        await page.goto(settings.LOGIN_URL, wait_until="domcontentloaded")
        await page.wait_for_function(CAPTCHA_RENDERED, arg=settings.CAPTCHA_IMAGE, timeout=self.captcha_timeout)
        return await page.locator(settings.CAPTCHA_IMAGE).screenshot()

    async def _discard_challenge(self, identifier: str) -> None:
        pending = self.challenges.delete(identifier)
        if pending is None:
            return
        # a relogin challenge borrows a session's context; only the page is ours
        await close_quietly(pending.page if pending.is_relogin else pending.context)
        logger.info("Discarded stale captcha challenge for %s", identifier)

    async def reap_challenges(self, max_age: float = settings.CHALLENGE_TTL_SEC) -> int:
        """Close challenges nobody answered within ``max_age`` seconds."""
        cutoff = time.time() - max_age
        reaped = 0
        for identifier, pending in self.challenges.items():
            if pending.created_at > cutoff:
                continue
            async with self._identifier_locks(identifier):
                current = self.challenges.get(identifier)
                if current is not None and current.created_at <= cutoff:
                    await self._discard_challenge(identifier)
                    reaped += 1
        return reaped

    async def issue_captcha(self, identifier: str) -> bytes:
        await self.reap_challenges()
        async with self._identifier_locks(identifier):
            await self._discard_challenge(identifier)
            context = await self.pool.new_context()
            try:
                page = await context.new_page()
                image = await self._capture_captcha(page)
            except PlaywrightError as exc:
                await close_quietly(context)
                logger.warning("Captcha load failed for %s: %s", identifier, exc.message)
                raise PortalUnavailable(f"Could not load captcha: {exc.message}") from exc
            except BaseException:
                await close_quietly(context)
                raise
            self.challenges.put(identifier, PendingChallenge(identifier, context, page))
            logger.info("Captcha issued for %s", identifier)
            return image

    # ---------------------- LOGIN ----------------------
    async def _submit_login(self, page: Page, identifier: str, secret: str, captcha: str) -> Optional[str]:
        """Submit the login form; return the portal's error text, or None when it let us in."""
        await page.fill(settings.REGNO_INPUT, identifier)
        await page.fill(settings.PASSWORD_INPUT, secret)
        await page.fill(settings.CAPTCHA_INPUT, captcha)
        await page.click(settings.LOGIN_BUTTON)
        await page.wait_for_load_state("networkidle")
        error = await page.query_selector(settings.LOGIN_ERROR)
        if error is None:
            return None
        return (await error.inner_text()).strip() or "Login failed"

    async def _open_session(self, identifier: str, context: BrowserContext, page: Page) -> str:
        await close_quietly(page)
        token = secrets.token_urlsafe(32)
        try:
            cookies = await context.cookies()
            await self.store_set(ACTIVE_SESSIONS, token, {
                "token": token,
                "identifier": identifier,
                "createdAt": now_iso(),
                "cookies": cookies,
            })
        except BaseException:
            await close_quietly(context)
            raise
        self.sessions.put(token, ActiveSession(token, identifier, context))
        return token

    async def login(self, identifier: str, secret: str, captcha: str) -> str:
        async with self._identifier_locks(identifier):
            pending = self.challenges.delete(identifier)
            if pending is None:
                raise ChallengeNotFound()
            if pending.is_relogin:
                await close_quietly(pending.page)
                raise ChallengeNotFound("Pending captcha belongs to a relogin, call /relogin")

            try:
                error = await self._submit_login(pending.page, identifier, secret, captcha)
            except PlaywrightError as exc:
                await close_quietly(pending.context)
                raise PortalUnavailable(f"Login submit failed: {exc.message}") from exc
            except BaseException:
                await close_quietly(pending.context)
                raise
            if error is not None:
                await close_quietly(pending.context)
                logger.info("Portal rejected login for %s: %s", identifier, error)
                raise LoginRejected(error)

            token = await self._open_session(identifier, pending.context, pending.page)
            if self.secret_box is not None:
                await self.store_set(USERS, identifier, {
                    "identifier": identifier,
                    "encryptedSecret": self.secret_box.encrypt(secret, identifier),
                    "createdAt": now_iso(),
                })
            logger.info("Login successful for %s", identifier)
            return token

    # ---------------------- RESOLVE ----------------------
    async def _restore(self, token: str, record: Dict[str, Any]) -> ResolvedSession:
        identifier = record["identifier"]
        context = await self.pool.new_context()
        try:
            if record.get("cookies"):
                await context.add_cookies(record["cookies"])
            page = await context.new_page()
            try:
                await page.goto(settings.PORTAL_BASE_URL, wait_until="domcontentloaded")
                login_form = await page.query_selector(settings.REGNO_INPUT)
            finally:
                await close_quietly(page)
        except PlaywrightError as exc:
            await close_quietly(context)
            raise PortalUnavailable(f"Could not restore session: {exc.message}") from exc
        except BaseException:
            await close_quietly(context)
            raise

        if login_form is None:
            logger.info("Restored session for %s from stored cookies", identifier)
            return ActiveSession(token, identifier, context)
        logger.info("Stored cookies for %s no longer valid; relogin required", identifier)
        return ExpiredSession(token, identifier, context)

    async def resolve(self, token: str) -> ResolvedSession:
        # a live session is useless once Chromium is gone
        if not self.pool.ready:
            raise BrowserNotReady("Browser not initialized yet, try again shortly")
        session = self.sessions.get(token)
        if session is not None:
            return session
        async with self._token_locks(token):
            session = self.sessions.get(token)
            if session is not None:
                return session
            record = await self.store_get(ACTIVE_SESSIONS, token)
            if record is None:
                raise SessionNotFound()
            session = await self._restore(token, record)
            self.sessions.put(token, session)
            return session

    async def require_active(self, token: str) -> ActiveSession:
        session = await self.resolve(token)
        if isinstance(session, ExpiredSession):
            raise ReloginRequired(f"{session.reason}, relogin required")
        return session

    def mark_expired(self, session: ActiveSession, reason: str = "portal session expired") -> None:
        if self.sessions.get(session.token) is session:
            self.sessions.put(session.token,
                              ExpiredSession(session.token, session.identifier, session.context, reason))

    # ---------------------- RELOGIN ----------------------
    async def issue_relogin_captcha(self, token: str) -> bytes:
        await self.reap_challenges()
        session = await self.resolve(token)
        identifier = session.identifier
        async with self._identifier_locks(identifier):
            await self._discard_challenge(identifier)
            page = None
            try:
                page = await session.context.new_page()
                image = await self._capture_captcha(page)
            except PlaywrightError as exc:
                if page is not None:
                    await close_quietly(page)
                raise PortalUnavailable(f"Could not load captcha: {exc.message}") from exc
            except BaseException:
                if page is not None:
                    await close_quietly(page)
                raise
            self.challenges.put(identifier, PendingChallenge(identifier, session.context, page, relogin_token=token))
            logger.info("Relogin captcha issued for %s", identifier)
            return image

    async def relogin(self, token: str, captcha: str) -> str:
        session = await self.resolve(token)
        identifier = session.identifier
        async with self._identifier_locks(identifier):
            pending = self.challenges.get(identifier)
            if pending is None or pending.relogin_token != token:
                raise ChallengeNotFound()
            self.challenges.delete(identifier)

            credential = await self.store_get(USERS, identifier)
            if credential is None or self.secret_box is None:
                await close_quietly(pending.page)
                raise CredentialNotFound()
            try:
                secret = self.secret_box.decrypt(credential["encryptedSecret"], identifier)
            except (KeyError, ValueError) as exc:
                # rotated SECRET_KEY or a damaged users record
                await close_quietly(pending.page)
                logger.warning("Stored secret for %s unreadable: %s", identifier, exc)
                raise CredentialNotFound("Stored secret unreadable, log in again") from exc

            try:
                error = await self._submit_login(pending.page, identifier, secret, captcha)
            except PlaywrightError as exc:
                await close_quietly(pending.page)
                raise PortalUnavailable(f"Relogin submit failed: {exc.message}") from exc
            except BaseException:
                await close_quietly(pending.page)
                raise
            if error is not None:
                await self._drop_session(token, close=False)
                await close_quietly(pending.context)
                logger.info("Portal rejected relogin for %s: %s", identifier, error)
                raise LoginRejected(error)

            await self._drop_session(token, close=False)
            new_token = await self._open_session(identifier, pending.context, pending.page)
            logger.info("Relogin successful for %s, token rotated", identifier)
            return new_token

    # ---------------------- LOGOUT ----------------------
    async def _drop_session(self, token: str, close: bool) -> None:
        session = self.sessions.delete(token)
        if close and session is not None:
            await close_quietly(session.context)
        await self.store_delete(ACTIVE_SESSIONS, token)

    async def logout(self, token: str) -> None:
        session = self.sessions.get(token)
        if session is not None:
            async with self._identifier_locks(session.identifier):
                pending = self.challenges.get(session.identifier)
                if pending is not None and pending.relogin_token == token:
                    self.challenges.delete(session.identifier)
        await self._drop_session(token, close=True)
        logger.info("Logged out token %s…", token[:6])
