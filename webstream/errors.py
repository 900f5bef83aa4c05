# webstream/errors.py
from __future__ import annotations


class ProxyError(Exception):
    """Base for every failure surfaced to an API client."""

    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__doc__)
        self.message = message or (self.__doc__ or "").strip()


# ---------------------- precondition failures ----------------------
class ChallengeNotFound(ProxyError):
    """Captcha challenge expired or not found"""
    status_code = 400


class CredentialNotFound(ProxyError):
    """No stored credential for relogin"""
    status_code = 400


class SessionNotFound(ProxyError):
    """Invalid or expired session token"""
    status_code = 401


class ReloginRequired(ProxyError):
    """Portal session expired, relogin required"""
    status_code = 401


# ---------------------- portal rejection ----------------------
class LoginRejected(ProxyError):
    """Login failed"""
    status_code = 401


# ---------------------- scrape-shape failures ----------------------
class ScrapeError(ProxyError):
    status_code = 500

    def __init__(self, category: str, message: str) -> None:
        super().__init__(f"{category}: {message}")
        self.category = category
        self.message = message


# ---------------------- infrastructure ----------------------
class BrowserNotReady(ProxyError):
    """Browser is not ready"""
    status_code = 503


class PortalUnavailable(ProxyError):
    """Portal did not respond in time"""
    status_code = 503


class InvalidRequest(ProxyError):
    """Invalid request"""
    status_code = 400
