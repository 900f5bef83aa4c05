# webstream/portals/__init__.py
from typing import Callable, Dict, List, Type
from .base import Category, LayoutError, PortalSessionExpired, ScrapeFailure

_REGISTRY: Dict[str, Type[Category]] = {}

def register_category(key: str) -> Callable[[Type[Category]], Type[Category]]:
    """Class decorator to auto-register a scrape category under its API name."""
    def decorator(cls: Type[Category]) -> Type[Category]:
        cls.KEY = key
        _REGISTRY[key] = cls
        return cls
    return decorator

def get_category(key: str) -> Type[Category]:
    try:
        return _REGISTRY[key]
    except KeyError:  # nicer error than raw KeyError
        raise ValueError(f"No scrape category registered for '{key}'") from None

def category_keys(submits: bool | None = None) -> List[str]:
    return [k for k, cls in _REGISTRY.items() if submits is None or cls.SUBMITS == submits]

__all__ = ["Category", "LayoutError", "PortalSessionExpired", "ScrapeFailure",
           "register_category", "get_category", "category_keys"]

# Import categories so they register.
from . import academics, applications, attendance, fees, profile  # noqa: E402,F401
