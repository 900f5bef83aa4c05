# webstream/imagehost.py
from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from . import settings

logger = logging.getLogger(__name__)


class ImageHostError(RuntimeError):
    pass


class ImageHost(ABC):
    @abstractmethod
    async def upload(self, data: bytes, name: str) -> str:
        """Store ``data`` and return a URL the client can load."""


class InlineImageHost(ImageHost):
    """No external host configured: hand the image back as a data: URL."""

    async def upload(self, data: bytes, name: str) -> str:
        return "data:image/png;base64," + base64.b64encode(data).decode()


class ImgbbImageHost(ImageHost):
    def __init__(self, api_key: str, upload_url: str = settings.IMGBB_UPLOAD_URL, timeout: float = 20.0) -> None:
        self.api_key, self.upload_url, self.timeout = api_key, upload_url, timeout

    async def upload(self, data: bytes, name: str) -> str:
        form = {"key": self.api_key, "image": base64.b64encode(data).decode(), "name": name}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                rsp = await client.post(self.upload_url, data=form)
                rsp.raise_for_status()
                return rsp.json()["data"]["url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning("Image upload failed: %s", e)
            raise ImageHostError(str(e)) from e


def default_image_host(api_key: Optional[str] = settings.IMGBB_API_KEY) -> ImageHost:
    return ImgbbImageHost(api_key) if api_key else InlineImageHost()
