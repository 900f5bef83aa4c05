"""Session proxy and scraper service for the SASTRA webstream student portal."""

__version__ = "1.0.0"
