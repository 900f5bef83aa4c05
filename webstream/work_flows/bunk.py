# webstream/work_flows/bunk.py
"""
Attendance projection ("bunk"): how many hours of each course the semester
will have and how many of those may be missed.

    perSem[c]   = Σ_day perDay[day][c] × DAYS_PER_SEM[day]
    perSem20[c] = floor(20% × perSem[c])

Derived from the cached timetable; nothing is scraped for it directly.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from ..errors import ScrapeError
from ..proxy import SessionProxy
from ..store import STUDENT_DETAILS, now_iso
from .scrape_category import scrape_category

BUNK = "bunk"

# class days in a semester per weekday
DAYS_PER_SEM = {"MON": 15, "TUE": 15, "WED": 16, "THU": 16, "FRI": 15, "SAT": 0}
ALLOWANCE_PERCENT = 20

EMPTY_CELLS = {"", "-", "--", "NIL", "FREE"}


def _course(cell: Any) -> str | None:
    text = " ".join(str(cell or "").split())
    return None if text.upper() in EMPTY_CELLS else text


def per_day_counts(timetable: Iterable[Mapping[str, Any]]) -> Dict[str, Dict[str, int]]:
    per_day: Dict[str, Dict[str, int]] = {}
    for row in timetable:
        day = str(row.get("day", "")).strip()[:3].upper()
        if not day:
            continue
        counts = per_day.setdefault(day, {})
        for column, cell in row.items():
            if column == "day":
                continue
            course = _course(cell)
            if course:
                counts[course] = counts.get(course, 0) + 1
    return per_day


def project_bunks(timetable: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    per_day = per_day_counts(timetable)
    per_sem: Dict[str, int] = {}
    for day, counts in per_day.items():
        for course, n in counts.items():
            per_sem[course] = per_sem.get(course, 0) + n * DAYS_PER_SEM.get(day, 0)
    # integer floor, no float rounding at the boundary
    per_sem20 = {course: total * ALLOWANCE_PERCENT // 100 for course, total in per_sem.items()}
    return {"perDay": per_day, "perSem": per_sem, "perSem20": per_sem20}


async def bunk(proxy: SessionProxy, token: str, force_refresh: bool = False) -> Dict[str, Any]:
    """Cached like any category; ``force_refresh`` re-scrapes the timetable as well."""
    session = await proxy.require_active(token)
    if not force_refresh:
        record = await proxy.store_get(STUDENT_DETAILS, session.identifier) or {}
        if BUNK in record:
            return record[BUNK]

    timetable = await scrape_category(proxy, "timetable", token, force_refresh=force_refresh)
    rows = timetable["data"]
    if not isinstance(rows, list) or not rows:
        raise ScrapeError(BUNK, "timetable has no records")

    entry = {"data": project_bunks(rows), "lastUpdated": now_iso()}
    await proxy.store_set(STUDENT_DETAILS, session.identifier, {BUNK: entry}, merge=True)
    return entry
