"""HTTP intake for feed items: the poller posts discovered entries here."""

from .router import router

__all__ = ["router"]
