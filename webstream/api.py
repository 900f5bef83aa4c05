# webstream/api.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from . import settings
from .browser import BrowserPool
from .catalogs import CATALOGS, Catalogs, Chatbot
from .crypto import SecretBox
from .errors import ProxyError, ScrapeError
from .imagehost import ImageHost, default_image_host
from .portals import category_keys
from .proxy import SessionProxy
from .store import SqliteStore
from .work_flows.bunk import BUNK, bunk
from .work_flows.scrape_category import scrape_category

logger = logging.getLogger(__name__)


# ---------------------- Schemas ----------------------
class CaptchaIn(BaseModel):
    identifier: str = Field(min_length=1)


class LoginIn(BaseModel):
    identifier: str = Field(min_length=1)
    secret: str = Field(min_length=1)
    captchaAnswer: str = Field(min_length=1)


class TokenIn(BaseModel):
    token: str = Field(min_length=1)


class ReloginIn(TokenIn):
    captchaAnswer: str = Field(min_length=1)


class ScrapeIn(TokenIn):
    forceRefresh: bool = False


class GrievanceIn(TokenIn):
    grievanceType: str
    subject: str
    description: str


class LeaveApplicationIn(TokenIn):
    leaveType: str
    fromDate: str
    toDate: str
    reason: str


class ChatIn(BaseModel):
    message: str = ""


# ---------------------- Dependencies ----------------------
def get_proxy(request: Request) -> SessionProxy:
    return request.app.state.proxy


def get_catalogs(request: Request) -> Catalogs:
    return request.app.state.catalogs


def get_image_host(request: Request) -> ImageHost:
    return request.app.state.image_host


def _png(data: bytes) -> Response:
    return Response(content=data, media_type="image/png", headers={"Cache-Control": "no-store"})


def _category_response(key: str, entry: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, key: entry["data"], "lastUpdated": entry["lastUpdated"]}


# ---------------------- Auth routes ----------------------
auth = APIRouter()


@auth.post("/captcha")
async def captcha(body: CaptchaIn, proxy: SessionProxy = Depends(get_proxy)):
    return _png(await proxy.issue_captcha(body.identifier.strip()))


@auth.post("/login")
async def login(body: LoginIn, proxy: SessionProxy = Depends(get_proxy)):
    token = await proxy.login(body.identifier.strip(), body.secret, body.captchaAnswer.strip())
    return {"success": True, "token": token}


@auth.post("/logout")
async def logout(body: TokenIn, proxy: SessionProxy = Depends(get_proxy)):
    await proxy.logout(body.token)
    return {"success": True}


@auth.post("/relogin-captcha")
async def relogin_captcha(body: TokenIn, proxy: SessionProxy = Depends(get_proxy)):
    return _png(await proxy.issue_relogin_captcha(body.token))


@auth.post("/relogin")
async def relogin(body: ReloginIn, proxy: SessionProxy = Depends(get_proxy)):
    new_token = await proxy.relogin(body.token, body.captchaAnswer.strip())
    return {"success": True, "newToken": new_token}


# ---------------------- Scrape routes ----------------------
scrape = APIRouter()


def _read_route(key: str):
    async def route(body: ScrapeIn, proxy: SessionProxy = Depends(get_proxy),
                    image_host: ImageHost = Depends(get_image_host)):
        entry = await scrape_category(proxy, key, body.token, force_refresh=body.forceRefresh,
                                      image_host=image_host)
        return _category_response(key, entry)
    route.__name__ = key
    return route


for _key in category_keys(submits=False):
    scrape.add_api_route(f"/{_key}", _read_route(_key), methods=["POST"], name=_key)


@scrape.post("/bunk")
async def bunk_route(body: ScrapeIn, proxy: SessionProxy = Depends(get_proxy)):
    return _category_response(BUNK, await bunk(proxy, body.token, force_refresh=body.forceRefresh))


@scrape.post("/grievances")
async def grievances(body: GrievanceIn, proxy: SessionProxy = Depends(get_proxy)):
    payload = body.model_dump(exclude={"token"})
    entry = await scrape_category(proxy, "grievances", body.token, payload=payload)
    return _category_response("grievances", entry)


@scrape.post("/leaveApplication")
async def leave_application(body: LeaveApplicationIn, proxy: SessionProxy = Depends(get_proxy)):
    payload = body.model_dump(exclude={"token"})
    entry = await scrape_category(proxy, "leaveApplication", body.token, payload=payload)
    return _category_response("leaveApplication", entry)


# ---------------------- Static routes ----------------------
static = APIRouter()


def _catalog_route(name: str):
    async def route(catalogs: Catalogs = Depends(get_catalogs)):
        return {"success": True, name: await asyncio.to_thread(catalogs.get, name)}
    route.__name__ = name
    return route


for _name in CATALOGS:
    static.add_api_route(f"/{_name}", _catalog_route(_name), methods=["GET"], name=_name)


@static.post("/chatbot")
async def chatbot(body: ChatIn, request: Request):
    return request.app.state.chatbot.reply(body.message)


@static.get("/health")
async def health(request: Request):
    proxy: Optional[SessionProxy] = request.app.state.proxy
    return {"success": True, "browserReady": bool(proxy and proxy.pool.ready)}


# ---------------------- App ----------------------
def _log_start_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Browser failed to start; endpoints will report not ready", exc_info=task.exception())


def create_app(
    proxy: Optional[SessionProxy] = None,
    catalogs: Optional[Catalogs] = None,
    image_host: Optional[ImageHost] = None,
    chatbot: Optional[Chatbot] = None,
) -> FastAPI:
    """Build the app. Without an injected ``proxy`` the lifespan launches Chromium and opens SQLite."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pool = None
        if app.state.proxy is None:
            store = SqliteStore(settings.STORE_PATH)
            secret_box = SecretBox.from_b64(settings.SECRET_KEY) if settings.SECRET_KEY else None
            if secret_box is None:
                logger.warning("SECRET_KEY not set: secrets are not stored and /relogin is unavailable")
            pool = BrowserPool()
            app.state.proxy = SessionProxy(pool, store, secret_box)
            app.state.catalogs = app.state.catalogs or Catalogs(store)
            # requests fail fast with 503 until the browser is up
            app.state.browser_start = asyncio.create_task(pool.start())
            app.state.browser_start.add_done_callback(_log_start_failure)
        yield
        if pool is not None:
            app.state.browser_start.cancel()
            await pool.stop()

    app = FastAPI(title="webstream proxy", version="1.0.0", lifespan=lifespan)
    app.state.proxy = proxy
    app.state.catalogs = catalogs or (Catalogs(proxy.store) if proxy is not None else None)
    app.state.image_host = image_host or default_image_host()
    app.state.chatbot = chatbot or Chatbot()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ALLOWED_ORIGIN] if settings.ALLOWED_ORIGIN != "*" else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProxyError)
    async def proxy_error(request: Request, exc: ProxyError):
        body: Dict[str, Any] = {"success": False, "error": exc.message}
        if isinstance(exc, ScrapeError):
            body["category"] = exc.category
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(body, status_code=exc.status_code)

    app.include_router(auth)
    app.include_router(scrape)
    app.include_router(static)
    return app
