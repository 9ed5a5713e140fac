"""Outbound interfaces the orchestrator dispatches through.

Concrete notifiers (Discord webhooks, ...) and the torrent client live outside
this package; anything with these methods can be plugged in.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol

from .items import FeedItem


class NotifierPort(Protocol):
    def notify(self, notifier_id: int, payload: Dict[str, Any]) -> None:
        ...


class CategoryAssignerPort(Protocol):
    def assign_category(self, item_identifier: str, category_name: str) -> None:
        ...


class ManualQueuePort(Protocol):
    def enqueue(self, item: FeedItem) -> Any:
        ...
