"""Errors raised while compiling reference data into matchers."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(Exception):
    """A filter references an unknown key/operator/set type or carries a bad value.

    Raised while compiling filters, never while matching an item. The snapshot
    builder collects these, skips the offending filter and keeps the rest.
    """

    def __init__(
        self,
        message: str,
        *,
        feed_filter_id: Optional[int] = None,
        entry_id: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.feed_filter_id = feed_filter_id
        self.entry_id = entry_id

    def with_filter(self, feed_filter_id: int) -> "ConfigurationError":
        """Return a copy tagged with the owning filter id."""
        return ConfigurationError(
            self.message, feed_filter_id=feed_filter_id, entry_id=self.entry_id
        )

    def to_dict(self) -> dict:
        return {
            "feed_filter_id": self.feed_filter_id,
            "entry_id": self.entry_id,
            "message": self.message,
        }

    def __str__(self) -> str:
        location = []
        if self.feed_filter_id is not None:
            location.append(f"filter {self.feed_filter_id}")
        if self.entry_id is not None:
            location.append(f"entry {self.entry_id}")
        if not location:
            return self.message
        return f"{', '.join(location)}: {self.message}"
