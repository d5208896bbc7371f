import queue

import pytest

from linkshrink.api import create_app
from linkshrink.models import Click, ClickEvent
from linkshrink.repository import (
    SqliteClickRepository,
    SqliteLinkRepository,
    connect,
    migrate,
)
from linkshrink.services import ClickService, LinkService

BASE_URL = "http://short.example.com"


@pytest.fixture
def conn():
    connection = connect(":memory:")
    migrate(connection)
    yield connection
    connection.close()


@pytest.fixture
def services(conn):
    link_service = LinkService(SqliteLinkRepository(conn))
    click_service = ClickService(SqliteClickRepository(conn))
    return link_service, click_service


@pytest.fixture
def events():
    return queue.Queue(maxsize=10)


@pytest.fixture
def client(services, events):
    link_service, click_service = services
    app = create_app(link_service, click_service, BASE_URL, events)
    return app.test_client()


class _BrokenLinkRepo:
    def get_link_by_short_code(self, short_code):
        raise RuntimeError("database is gone")

    def create_link(self, link):
        raise RuntimeError("database is gone")

    def get_all_links(self):
        raise RuntimeError("database is gone")

    def count_clicks_by_link_id(self, link_id):
        raise RuntimeError("database is gone")


class _BrokenClickRepo:
    def create_click(self, click):
        raise RuntimeError("database is gone")

    def count_clicks_by_link_id(self, link_id):
        raise RuntimeError("database is gone")


def test_health_reports_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_create_link_returns_created_link(client, services):
    long_url = "https://www.example.com/search?q=go+lang"
    response = client.post("/api/v1/links", json={"long_url": long_url})
    assert response.status_code == 201
    body = response.get_json()
    assert body["long_url"] == long_url
    assert len(body["short_code"]) == 6
    assert body["full_short_url"] == BASE_URL + "/" + body["short_code"]
    link_service, _ = services
    stored = link_service.get_link_by_short_code(body["short_code"])
    assert stored.long_url == long_url


def test_create_link_requires_long_url(client):
    response = client.post("/api/v1/links", json={})
    assert response.status_code == 400
    assert "error" in response.get_json()


@pytest.mark.parametrize("bad", ["not a url", "www.example.com/page", "://missing"])
def test_create_link_rejects_invalid_url(client, bad):
    response = client.post("/api/v1/links", json={"long_url": bad})
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_create_link_rejects_non_json_body(client):
    response = client.post("/api/v1/links", data="plain", content_type="text/plain")
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_create_link_storage_failure_is_internal_error(events):
    app = create_app(
        LinkService(_BrokenLinkRepo()), ClickService(_BrokenClickRepo()), BASE_URL, events
    )
    response = app.test_client().post(
        "/api/v1/links", json={"long_url": "https://www.example.com/"}
    )
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_redirect_sends_found_and_queues_event(client, services, events):
    link_service, _ = services
    link = link_service.create_link("https://www.example.com/target")
    response = client.get(
        f"/api/v1/links/{link.short_code}",
        headers={"User-Agent": "test-agent", "X-Forwarded-For": "203.0.113.7"},
    )
    assert response.status_code == 302
    assert response.headers["Location"] == "https://www.example.com/target"
    event = events.get_nowait()
    assert isinstance(event, ClickEvent)
    assert event.link_id == link.id
    assert event.user_agent == "test-agent"
    assert event.ip_address == "203.0.113.7"


def test_redirect_unknown_code_is_not_found(client, events):
    response = client.get("/api/v1/links/nothere")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Short link not found"}
    assert events.empty()


def test_redirect_with_full_queue_still_redirects(services):
    link_service, click_service = services
    full = queue.Queue(maxsize=1)
    full.put("occupied")
    app = create_app(link_service, click_service, BASE_URL, full)
    link = link_service.create_link("https://www.example.com/full")
    response = app.test_client().get(f"/api/v1/links/{link.short_code}")
    assert response.status_code == 302
    assert full.qsize() == 1
    assert full.get_nowait() == "occupied"


def test_redirect_storage_failure_is_internal_error(events):
    app = create_app(
        LinkService(_BrokenLinkRepo()), ClickService(_BrokenClickRepo()), BASE_URL, events
    )
    response = app.test_client().get("/api/v1/links/abc123")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


@pytest.mark.parametrize("template", ["/api/v1/links/{}/stats", "/api/stats/{}"])
def test_stats_counts_recorded_clicks(client, services, template):
    link_service, click_service = services
    link = link_service.create_link("https://www.example.com/stats")
    before = client.get(template.format(link.short_code)).get_json()
    assert before["total_clicks"] == 0
    event = ClickEvent(link_id=link.id, timestamp=__import_time())
    click_service.record_click(event.to_click())
    click_service.record_click(event.to_click())
    response = client.get(template.format(link.short_code))
    assert response.status_code == 200
    body = response.get_json()
    assert body["short_code"] == link.short_code
    assert body["long_url"] == "https://www.example.com/stats"
    assert body["total_clicks"] == click_service.get_clicks_count_by_link_id(link.id)
    assert body["total_clicks"] == before["total_clicks"] + 2


def __import_time():
    from datetime import datetime, timezone

    return datetime.now(timezone.utc)


def test_stats_unknown_code_is_not_found(client):
    response = client.get("/api/v1/links/nothere/stats")
    assert response.status_code == 404
    assert "error" in response.get_json()


def test_stats_count_failure_is_reported(services, events):
    link_service, _ = services
    link = link_service.create_link("https://www.example.com/count")
    app = create_app(link_service, ClickService(_BrokenClickRepo()), BASE_URL, events)
    response = app.test_client().get(f"/api/v1/links/{link.short_code}/stats")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to retrieve click count"}


def test_redirect_then_worker_style_persist_counts(client, services, events):
    link_service, click_service = services
    link = link_service.create_link("https://www.example.com/flow")
    client.get(f"/api/v1/links/{link.short_code}")
    event = events.get_nowait()
    click = event.to_click()
    assert isinstance(click, Click)
    click_service.record_click(click)
    body = client.get(f"/api/v1/links/{link.short_code}/stats").get_json()
    assert body["total_clicks"] == 1