# webstream/portals/base.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from playwright.async_api import Page
from bs4 import BeautifulSoup

from .. import settings


class ScrapeFailure(Exception):
    """A category could not produce its value (reported per category, session stays valid)."""


class LayoutError(ScrapeFailure):
    """Expected table/row/column is not on the page."""


class PortalSessionExpired(Exception):
    """The portal bounced us to its login form."""


def portal_url(path: str) -> str:
    return settings.PORTAL_BASE_URL + path.lstrip("/")


def resource_url(resource_id: int) -> str:
    return portal_url(f"resource/StudentDetailsResources.jsp?resourceid={resource_id}")


class Category(ABC):
    """Interface every scrape category implements. One instance per request, one page."""

    KEY = ""
    URL = ""
    SUBMITS = False                   # form submission: never served from cache
    HISTORY = False                   # append-only: each new value is added to a list
    MIRRORS: Tuple[str, ...] = ()     # extra collections written with the same value

    def __init__(self, page: Page, payload: Optional[Dict[str, Any]] = None, image_host: Any = None) -> None:
        self.page, self.payload, self.image_host = page, payload or {}, image_host

    @abstractmethod
    async def fetch(self) -> Any: ...

    # shared helpers ↓
    async def open(self, url: Optional[str] = None) -> BeautifulSoup:
        await self.page.goto(url or self.URL, wait_until="domcontentloaded")
        soup = await self.getSoup()
        if soup.select_one(settings.REGNO_INPUT) is not None:
            raise PortalSessionExpired(self.KEY)
        return soup

    async def getSoup(self) -> BeautifulSoup:
        html = await self.page.content()
        return BeautifulSoup(html, "html.parser")
