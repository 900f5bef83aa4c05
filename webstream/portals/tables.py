# webstream/portals/tables.py
"""
Declarative table extraction.

Every read-only category is one of two page shapes:

  • a grid of rows  → ``TablePolicy``  (field names per column, header/footer
    offsets, an optional "Total" row matched by its exact label)
  • a label/value sheet → ``LabelValuePolicy``

The row offsets are fixed by the portal's current markup; if the portal adds
or removes a header row the offsets move with it.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .base import Category, LayoutError

NO_RECORDS = "No records found"


def cell_text(cell: Tag) -> str:
    return re.sub(r"\s+", " ", cell.get_text(" ", strip=True)).strip()


def row_cells(row: Tag) -> List[str]:
    return [cell_text(c) for c in row.find_all(["td", "th"], recursive=False)]


@dataclass(frozen=True)
class TablePolicy:
    fields: Tuple[str, ...]
    selector: str = "table"
    index: int = 0                      # which match of ``selector``
    skip_head: int = 1                  # header rows
    skip_tail: int = 0                  # footer rows
    total_label: Optional[str] = None   # exact text of the label cell of the total row
    total_fields: Tuple[str, ...] = ()  # columns after the label cell
    keep: str = "rows"                  # rows | total | both

    def extract(self, soup: BeautifulSoup) -> Any:
        tables = soup.select(self.selector)
        if len(tables) <= self.index:
            raise LayoutError(f"table {self.selector!r}[{self.index}] not found")
        rows = tables[self.index].find_all("tr")
        body = rows[self.skip_head:len(rows) - self.skip_tail]

        records: List[Dict[str, str]] = []
        total: Optional[Dict[str, str]] = None
        for tr in body:
            cells = row_cells(tr)
            if not any(cells):
                continue
            if self.total_label is not None and self.total_label in cells:
                after = cells[cells.index(self.total_label) + 1:]
                total = dict(zip(self.total_fields, after))
                continue
            if len(cells) < len(self.fields):
                continue  # colspan'd notes, sub-headers
            records.append(dict(zip(self.fields, cells)))

        if self.keep == "total":
            if total is None:
                raise LayoutError(f"no {self.total_label!r} row")
            return total
        if self.keep == "both":
            return {"rows": records or NO_RECORDS, "total": total}
        return records or NO_RECORDS


@dataclass(frozen=True)
class LabelValuePolicy:
    labels: Dict[str, str]              # portal label -> output key
    selector: str = "table"

    def extract(self, soup: BeautifulSoup) -> Dict[str, Optional[str]]:
        found: Dict[str, Optional[str]] = {key: None for key in self.labels.values()}
        for table in soup.select(self.selector):
            for tr in table.find_all("tr"):
                cells = row_cells(tr)
                # label/value pairs may sit side by side: [l1, v1, l2, v2]
                for label, value in zip(cells[0::2], cells[1::2]):
                    key = self.labels.get(label.rstrip(":").strip())
                    if key is not None:
                        found[key] = value
        if all(v is None for v in found.values()):
            raise LayoutError(f"none of {sorted(self.labels)} found")
        return found


class GridCategory(Category):
    """Category backed by one ``TablePolicy`` on one URL."""

    POLICY: TablePolicy

    async def fetch(self) -> Any:
        soup = await self.open()
        return self.POLICY.extract(soup)


class SheetCategory(Category):
    """Category backed by one ``LabelValuePolicy`` on one URL."""

    POLICY: LabelValuePolicy

    async def fetch(self) -> Any:
        soup = await self.open()
        return self.POLICY.extract(soup)
