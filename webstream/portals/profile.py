# webstream/portals/profile.py
from __future__ import annotations

from typing import Any, Dict

from . import register_category
from .base import Category, ScrapeFailure, portal_url, resource_url
from .tables import LabelValuePolicy, SheetCategory
from ..imagehost import ImageHostError

HOME_URL = portal_url("usermanager/home.jsp")
PHOTO = "#imgPhoto"


@register_category("profile")
class Profile(SheetCategory):
    URL = HOME_URL
    POLICY = LabelValuePolicy(labels={
        "Name": "name",
        "Register Number": "regNo",
        "Programme": "programme",
        "Branch": "branch",
        "Semester": "semester",
        "Email": "email",
    })


@register_category("dob")
class DateOfBirth(SheetCategory):
    URL = resource_url(59)
    POLICY = LabelValuePolicy(labels={"Date of Birth": "dob"})


@register_category("studentStatus")
class StudentStatus(SheetCategory):
    URL = resource_url(37)
    POLICY = LabelValuePolicy(labels={
        "Status": "status",
        "Hosteller / Dayscholar": "residence",
        "Year of Study": "year",
    })


@register_category("profilePic")
class ProfilePic(Category):
    """Screenshot of the photo on the home page, pushed to the image host."""

    URL = HOME_URL

    async def fetch(self) -> Dict[str, Any]:
        await self.open()
        photo = await self.page.query_selector(PHOTO)
        if photo is None:
            raise ScrapeFailure("profile photo not found")
        png = await photo.screenshot()
        try:
            url = await self.image_host.upload(png, name="profile.png")
        except ImageHostError as e:
            raise ScrapeFailure(f"upload failed: {e}") from e
        return {"url": url}
