"""Tests for notification payloads."""

from matcher.items import FeedItem
from matcher.notifications import build_notification_payload, truncate_description


def test_payload_has_webhook_shape():
    item = FeedItem(
        identifier="1",
        title="Mistborn",
        link="https://tracker.example/t/1",
        authors=["Brandon Sanderson"],
        narrators=["Michael Kramer"],
        series=["Mistborn"],
        category="Audiobooks - Fantasy",
        description="A heist.",
    )

    payload = build_notification_payload(
        item, headline="Book Grabbed", category="audiobooks", matched_by=[("Subscribed Author", "Brandon Sanderson")]
    )

    [embed] = payload["embeds"]
    assert embed["title"] == "Mistborn"
    assert embed["url"] == "https://tracker.example/t/1"
    assert embed["description"] == "Book Grabbed"
    fields = {f["name"]: f for f in embed["fields"]}
    assert fields["Category"]["value"] == "audiobooks"
    assert fields["Narrators"]["value"] == "Michael Kramer"
    assert fields["Subscribed Author"]["inline"] is True
    assert "Tags" not in fields


def test_description_is_truncated():
    assert truncate_description("x" * 1000) == "x" * 1000
    truncated = truncate_description("x" * 1001)
    assert len(truncated) == 1000
    assert truncated.endswith("...")
    assert truncate_description(None) == ""
