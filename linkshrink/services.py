"""Business logic for creating links and counting clicks."""

from __future__ import annotations

import logging
import secrets

from .models import Click, Link
from .repository import ClickRepository, LinkRepository, RecordNotFound

log = logging.getLogger(__name__)

CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
SHORT_CODE_LENGTH = 6
MAX_SHORT_CODE_ATTEMPTS = 5


class ShortCodeError(RuntimeError):
    """Raised when no unused short code could be generated."""


class LinkService:
    """Creates and looks up shortened links."""

    def __init__(self, link_repo: LinkRepository) -> None:
        self._link_repo = link_repo

    def generate_short_code(self, length: int) -> str:
        """Return a random code of ``length`` characters drawn from :data:`CHARSET`."""
        if length < 0:
            raise ValueError(f"short code length must not be negative, got {length}")
        return "".join(secrets.choice(CHARSET) for _ in range(length))

    def create_link(self, long_url: str) -> Link:
        """Store ``long_url`` under a fresh, unused short code and return the link.

        Raises :class:`ShortCodeError` when every attempt hits an existing code.
        Storage errors other than a missing record propagate unchanged.
        """
        short_code = None
        for attempt in range(1, MAX_SHORT_CODE_ATTEMPTS + 1):
            code = self.generate_short_code(SHORT_CODE_LENGTH)
            try:
                self._link_repo.get_link_by_short_code(code)
            except RecordNotFound:
                short_code = code
                break
            log.info(
                "Short code '%s' already exists, retrying generation (%d/%d)...",
                code,
                attempt,
                MAX_SHORT_CODE_ATTEMPTS,
            )

        if short_code is None:
            raise ShortCodeError(
                f"could not generate a unique short code after "
                f"{MAX_SHORT_CODE_ATTEMPTS} attempts"
            )

        link = Link(short_code=short_code, long_url=long_url)
        self._link_repo.create_link(link)
        return link

    def get_link_by_short_code(self, short_code: str) -> Link:
        """Return the link for ``short_code``; raise :class:`RecordNotFound` if absent."""
        if not short_code:
            raise ValueError("short code cannot be empty")
        return self._link_repo.get_link_by_short_code(short_code)


class ClickService:
    """Records clicks and reports click counts."""

    def __init__(self, click_repo: ClickRepository) -> None:
        self._click_repo = click_repo

    def record_click(self, click: Click) -> None:
        """Persist ``click``."""
        self._click_repo.create_click(click)

    def get_clicks_count_by_link_id(self, link_id: int) -> int:
        """Return the number of clicks recorded for ``link_id``."""
        return self._click_repo.count_clicks_by_link_id(link_id)


def get_link_stats(
    link_service: LinkService, click_service: ClickService, short_code: str
) -> tuple[Link, int]:
    """Return the link for ``short_code`` and its total number of clicks."""
    link = link_service.get_link_by_short_code(short_code)
    total = click_service.get_clicks_count_by_link_id(link.id)
    return link, total