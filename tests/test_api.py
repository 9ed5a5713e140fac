"""Tests for the HTTP intake and service endpoints."""

import pytest
from fastapi.testclient import TestClient

from matcher.api import app, configure_app
from matcher.config import MatchingConfig
from matcher.orchestrator import create_orchestrator


@pytest.fixture
def orchestrator(db_engine, notifier, category_assigner):
    return create_orchestrator(db_engine, notifier=notifier, category_assigner=category_assigner)


@pytest.fixture
def client(orchestrator):
    configure_app(app, orchestrator, matching=MatchingConfig())
    yield TestClient(app)
    app.state.orchestrator = None
    app.state.manual_queue = None
    app.state.matching = None


def test_submit_item_returns_outcome(builder, client):
    feed = builder.feed()
    books = builder.category("books")
    rule = builder.rule_filter(feed, "kings", books, [("all", [("title", "contains", "kings")])])

    response = client.post(
        "/items", json={"identifier": "1", "title": "The Way of Kings", "feed_id": feed}
    )

    assert response.status_code == 200
    assert response.json() == {
        "outcome": "matched_rule",
        "filter_id": rule,
        "filter_name": "kings",
        "category": "books",
        "notifier_id": None,
    }


def test_submit_item_validates_payload(client):
    response = client.post("/items", json={"title": "no identifier"})
    assert response.status_code == 422


def test_batch_and_queue(builder, client):
    builder.subscription(builder.author("Ann Leckie"), "ebook")
    items = [
        {"identifier": "1", "title": "Ancillary Justice", "authors": ["Ann Leckie"]},
        {"identifier": "1", "title": "Ancillary Justice", "authors": ["Ann Leckie"]},
        {"identifier": "2", "title": "Mystery Book"},
    ]

    response = client.post("/items/batch", json=items)

    assert response.status_code == 200
    outcomes = response.json()
    assert [o["outcome"] for o in outcomes] == ["matched_subscription", "matched_subscription", "no_match"]
    assert [o["first_delivery"] for o in outcomes[:2]] == [True, False]

    queued = client.get("/queue").json()
    assert [row["identifier"] for row in queued] == ["2"]


def test_raw_entry_is_parsed_before_matching(builder, client):
    builder.subscription(builder.author("Brandon Sanderson"), "audiobook")

    response = client.post(
        "/items/raw",
        json={
            "guid": "https://tracker.example/t/555",
            "title": "Mistborn",
            "description": "Author(s): Brandon Sanderson<br/>Category: Audiobooks - Fantasy",
        },
    )

    data = response.json()
    assert data["identifier"] == "555"
    assert data["outcome"] == "matched_subscription"


def test_raw_entry_uses_the_configured_audiobook_prefix(builder, orchestrator):
    builder.subscription(builder.author("Brandon Sanderson"), "audiobook")
    configure_app(app, orchestrator, matching=MatchingConfig(audiobook_category_prefix="Hoerbuch"))
    try:
        client = TestClient(app)
        entry = {
            "guid": "https://tracker.example/t/556",
            "title": "Elantris",
            "description": "Author(s): Brandon Sanderson<br/>Category: Hoerbuch - Fantasy",
        }
        data = client.post("/items/raw", json=entry).json()
    finally:
        app.state.orchestrator = None
        app.state.manual_queue = None
        app.state.matching = None

    assert data["outcome"] == "matched_subscription"
    assert data["first_delivery"] is True


def test_health_and_config_errors(builder, client):
    feed = builder.feed()
    books = builder.category("books")
    bad = builder.rule_filter(feed, "broken", books, [("all", [("title", "regex", "([")])])

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["configuration_errors"] == 1

    errors = client.get("/config/errors").json()
    assert errors[0]["feed_filter_id"] == bad


def test_config_reload_picks_up_changes(builder, client):
    client.get("/health")
    assert client.post("/config/reload").json()["reloaded"] is False

    builder.author("Ann Leckie")
    data = client.post("/config/reload").json()
    assert data["reloaded"] is True
    assert data["generation"] == 2


def test_endpoints_unavailable_without_engine():
    app.state.orchestrator = None
    client = TestClient(app)
    assert client.get("/health").status_code == 503
    assert client.post("/items", json={"identifier": "1", "title": "x"}).status_code == 503
