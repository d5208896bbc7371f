import sqlite3
import string
from datetime import datetime, timezone

import pytest

from linkshrink.models import Click, Link
from linkshrink.repository import (
    RecordNotFound,
    SqliteClickRepository,
    SqliteLinkRepository,
    connect,
    migrate,
)
from linkshrink.services import (
    CHARSET,
    MAX_SHORT_CODE_ATTEMPTS,
    SHORT_CODE_LENGTH,
    ClickService,
    LinkService,
    ShortCodeError,
    get_link_stats,
)


@pytest.fixture
def conn():
    connection = connect(":memory:")
    migrate(connection)
    yield connection
    connection.close()


@pytest.fixture
def link_service(conn):
    return LinkService(SqliteLinkRepository(conn))


@pytest.fixture
def click_service(conn):
    return ClickService(SqliteClickRepository(conn))


class CollidingRepo:
    """Reports every code as taken for the first ``taken`` lookups."""

    def __init__(self, taken):
        self.taken = taken
        self.lookups = []
        self.created = []

    def get_link_by_short_code(self, short_code):
        self.lookups.append(short_code)
        if len(self.lookups) <= self.taken:
            return Link(short_code=short_code, long_url="https://example.com/")
        raise RecordNotFound(short_code)

    def create_link(self, link):
        self.created.append(link)

    def get_all_links(self):
        return list(self.created)

    def count_clicks_by_link_id(self, link_id):
        return 0


class BrokenRepo(CollidingRepo):
    def get_link_by_short_code(self, short_code):
        raise sqlite3.OperationalError("database is locked")


def test_generated_code_uses_only_letters_and_digits(link_service):
    code = link_service.generate_short_code(500)
    assert len(code) == 500
    assert set(code) <= set(string.ascii_letters + string.digits)


@pytest.mark.parametrize("length", [0, 1, 6, 32])
def test_generate_short_code_length_and_alphabet(link_service, length):
    code = link_service.generate_short_code(length)
    assert len(code) == length
    assert set(code) <= set(CHARSET)


def test_generate_short_code_rejects_negative_length(link_service):
    with pytest.raises(ValueError):
        link_service.generate_short_code(-1)


def test_generated_codes_vary(link_service):
    codes = {link_service.generate_short_code(SHORT_CODE_LENGTH) for _ in range(50)}
    assert len(codes) > 1


def test_create_link_persists(link_service):
    link = link_service.create_link("https://example.com/page")
    assert len(link.short_code) == SHORT_CODE_LENGTH
    assert link.id is not None
    stored = link_service.get_link_by_short_code(link.short_code)
    assert stored.long_url == "https://example.com/page"
    assert stored.id == link.id


def test_create_link_retries_after_collisions():
    repo = CollidingRepo(taken=2)
    link = LinkService(repo).create_link("https://example.com/x")
    assert len(repo.lookups) == 3
    assert link.short_code == repo.lookups[-1]
    assert repo.created == [link]


def test_create_link_gives_up_after_max_attempts():
    repo = CollidingRepo(taken=MAX_SHORT_CODE_ATTEMPTS)
    with pytest.raises(ShortCodeError):
        LinkService(repo).create_link("https://example.com/x")
    assert len(repo.lookups) == MAX_SHORT_CODE_ATTEMPTS
    assert repo.created == []


def test_create_link_propagates_storage_errors():
    repo = BrokenRepo(taken=0)
    with pytest.raises(sqlite3.OperationalError):
        LinkService(repo).create_link("https://example.com/x")
    assert repo.created == []


def test_get_link_by_short_code_rejects_empty(link_service):
    with pytest.raises(ValueError):
        link_service.get_link_by_short_code("")


def test_get_link_by_short_code_missing(link_service):
    with pytest.raises(RecordNotFound):
        link_service.get_link_by_short_code("nothere")


def test_record_and_count_clicks(link_service, click_service):
    link = link_service.create_link("https://example.com/a")
    other = link_service.create_link("https://example.com/b")
    now = datetime.now(timezone.utc)
    for _ in range(3):
        click_service.record_click(Click(link_id=link.id, timestamp=now))
    click_service.record_click(Click(link_id=other.id, timestamp=now))
    assert click_service.get_clicks_count_by_link_id(link.id) == 3
    assert click_service.get_clicks_count_by_link_id(other.id) == 1


def test_get_link_stats(link_service, click_service):
    link = link_service.create_link("https://example.com/stats")
    now = datetime.now(timezone.utc)
    click_service.record_click(Click(link_id=link.id, timestamp=now, user_agent="ua"))
    click_service.record_click(Click(link_id=link.id, timestamp=now))
    found, total = get_link_stats(link_service, click_service, link.short_code)
    assert found.short_code == link.short_code
    assert found.long_url == "https://example.com/stats"
    assert total == 2


def test_get_link_stats_missing(link_service, click_service):
    with pytest.raises(RecordNotFound):
        get_link_stats(link_service, click_service, "absent")