# webstream/sessions.py
"""
Session lifecycle as explicit states.

    Anonymous ──captcha──▶ PendingChallenge ──login ok──▶ ActiveSession
                                 │                           │   ▲
                             login fail                restart│   │relogin ok
                                 ▼                           ▼   │
                             Anonymous                  ExpiredSession

A pending challenge is keyed by registration number, sessions by token.
Both tables are injected into ``SessionProxy`` so the resolver can be tested
against plain in-memory tables and a fake document store.
"""
from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from playwright.async_api import BrowserContext, Page


@dataclass(frozen=True)
class Anonymous:
    identifier: str


@dataclass
class PendingChallenge:
    identifier: str
    context: BrowserContext
    page: Page
    created_at: float = field(default_factory=time.time)
    relogin_token: Optional[str] = None   # set when the context belongs to a live session

    @property
    def is_relogin(self) -> bool:
        return self.relogin_token is not None


@dataclass
class ActiveSession:
    token: str
    identifier: str
    context: BrowserContext
    created_at: float = field(default_factory=time.time)


@dataclass
class ExpiredSession:
    token: str
    identifier: str
    context: BrowserContext
    reason: str = "portal session expired"


SessionState = Union[Anonymous, PendingChallenge, ActiveSession, ExpiredSession]
ResolvedSession = Union[ActiveSession, ExpiredSession]

V = TypeVar("V")


class Table(ABC, Generic[V]):
    @abstractmethod
    def get(self, key: str) -> Optional[V]: ...

    @abstractmethod
    def put(self, key: str, value: V) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> Optional[V]:
        """Remove and return the entry, if any."""

    @abstractmethod
    def items(self) -> List[Tuple[str, V]]: ...


class InMemoryTable(Table[V]):
    # single event loop; no awaits inside, so dict ops are atomic
    def __init__(self) -> None:
        self._items: Dict[str, V] = {}

    def get(self, key):
        return self._items.get(key)

    def put(self, key, value):
        self._items[key] = value

    def delete(self, key):
        return self._items.pop(key, None)

    def items(self):
        return list(self._items.items())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: Any) -> bool:
        return key in self._items


SessionTable = Table[ResolvedSession]
ChallengeTable = Table[PendingChallenge]


class KeyedLocks:
    """One asyncio.Lock per key; entries are dropped when nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    def __call__(self, key: str) -> "_KeyedLock":
        return _KeyedLock(self, key)

    def __len__(self) -> int:
        return len(self._locks)


class _KeyedLock:
    def __init__(self, owner: KeyedLocks, key: str) -> None:
        self.owner, self.key = owner, key

    async def __aenter__(self) -> None:
        owner = self.owner
        lock = owner._locks.setdefault(self.key, asyncio.Lock())
        owner._users[self.key] += 1
        try:
            await lock.acquire()
        except BaseException:
            self._release_user()
            raise

    async def __aexit__(self, *exc) -> None:
        self.owner._locks[self.key].release()
        self._release_user()

    def _release_user(self) -> None:
        owner = self.owner
        owner._users[self.key] -= 1
        if owner._users[self.key] == 0:
            del owner._users[self.key]
            del owner._locks[self.key]
