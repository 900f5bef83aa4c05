# webstream/catalogs.py
"""
Static datasets served without auth (mess menus, past papers, materials) and
the keyword chatbot that points students at course links.
"""
from __future__ import annotations

import json
import pathlib
import re
from typing import Any, Dict, List, Optional

from .store import CACHE, DocumentStore, now_iso

DATA_DIR = pathlib.Path(__file__).parent / "data"
CATALOGS = {
    "pyq": "pyq.json",
    "materials": "materials.json",
    "messMenu": "mess_menu.json",
    "messMenuGirls": "mess_menu_girls.json",
}
FALLBACK_REPLY = (
    "Sorry, I couldn't find that course. Try a course name like \"java\" or \"dbms\"."
)


def load_json(name: str) -> Any:
    with open(DATA_DIR / name, "r", encoding="utf-8") as f:
        return json.load(f)


class Catalogs:
    """Bundled datasets, snapshotted into the ``cache`` collection the first time they are served."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get(self, name: str) -> Any:
        if name not in CATALOGS:
            raise KeyError(name)
        cached = self.store.get(CACHE, name)
        if cached is not None:
            return cached["data"]
        data = load_json(CATALOGS[name])
        self.store.set(CACHE, name, {"data": data, "lastUpdated": now_iso()})
        return data


class Chatbot:
    def __init__(self, subjects: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        subjects = subjects if subjects is not None else load_json("subjects.json")
        # (alias, key), longest alias first so overlapping aliases resolve to the most specific
        self._aliases = sorted(
            ((alias.lower(), key) for key, entry in subjects.items() for alias in entry.get("aliases", [key])),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )
        self._subjects = subjects

    def match(self, message: str) -> Optional[str]:
        text = " ".join(str(message or "").lower().split())
        for alias, key in self._aliases:
            if re.search(rf"(?<!\w){re.escape(alias)}(?!\w)", text):
                return key
        return None

    def reply(self, message: str) -> Dict[str, Any]:
        key = self.match(message)
        if key is None:
            return {"reply": FALLBACK_REPLY, "links": []}
        entry = self._subjects[key]
        links: List[str] = list(entry.get("links", []))
        return {"reply": f"Here is what I have for {entry.get('name', key)}:", "subject": key, "links": links}
