# webstream/work_flows/scrape_category.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError

from ..browser import close_quietly
from ..errors import InvalidRequest, ReloginRequired, ScrapeError
from ..imagehost import ImageHost
from ..portals import PortalSessionExpired, ScrapeFailure, get_category
from ..portals.applications import InvalidSubmission
from ..proxy import SessionProxy
from ..store import STUDENT_DETAILS, now_iso

logger = logging.getLogger(__name__)


async def scrape_category(
    proxy: SessionProxy,
    key: str,
    token: str,
    force_refresh: bool = False,
    payload: Optional[Dict[str, Any]] = None,
    image_host: Optional[ImageHost] = None,
) -> Dict[str, Any]:
    """
    Serve one category for the session behind ``token``.

    Returns the StudentRecord entry ``{"data": ..., "lastUpdated": ...}``.
    Read categories come from the cache unless ``force_refresh``; submissions
    always hit the portal and are appended to the category's history.
    """
    Engine = get_category(key)
    session = await proxy.require_active(token)
    identifier = session.identifier

    record = await proxy.store_get(STUDENT_DETAILS, identifier) or {}
    previous = record.get(key)
    if previous is not None and not force_refresh and not Engine.SUBMITS:
        return previous

    page = None
    try:
        page = await session.context.new_page()
        engine = Engine(page, payload=payload, image_host=image_host)
        data = await engine.fetch()
    except PortalSessionExpired:
        proxy.mark_expired(session)
        raise ReloginRequired() from None
    except InvalidSubmission as e:
        raise InvalidRequest(str(e)) from e
    except ScrapeFailure as e:
        logger.warning("[%s] %s for %s", key, e, identifier)
        raise ScrapeError(key, str(e)) from e
    except PlaywrightError as e:
        logger.warning("[%s] browser error for %s: %s", key, identifier, e.message)
        raise ScrapeError(key, e.message) from e
    finally:
        if page is not None:
            await close_quietly(page)

    if Engine.HISTORY:
        # every acknowledged submission is its own entry
        history = previous["data"] if previous and isinstance(previous.get("data"), list) else []
        data = history + [data]

    entry = {"data": data, "lastUpdated": now_iso()}
    await proxy.store_set(STUDENT_DETAILS, identifier, {key: entry}, merge=True)
    for collection in Engine.MIRRORS:
        await proxy.store_set(collection, identifier, {key: entry}, merge=True)
    logger.info("[%s] refreshed for %s", key, identifier)
    return entry
