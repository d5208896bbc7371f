"""Periodic reachability checks of the long URLs behind shortened links."""

from __future__ import annotations

import logging
import threading
import urllib.error
import urllib.request
from datetime import timedelta
from typing import Callable

from .models import Link
from .repository import LinkRepository

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5.0

_STATE_LABELS = {True: "ACCESSIBLE", False: "INACCESSIBLE"}


def format_state(accessible: bool) -> str:
    """Return a readable label for a reachability state."""
    return _STATE_LABELS[bool(accessible)]


class UrlMonitor:
    """Checks every stored long URL at a fixed interval and logs state changes."""

    def __init__(
        self,
        link_repo: LinkRepository,
        interval: float | timedelta,
        checker: Callable[[str], bool] | None = None,
    ) -> None:
        self._link_repo = link_repo
        if isinstance(interval, timedelta):
            interval = interval.total_seconds()
        self._interval = float(interval)
        self._checker = checker if checker is not None else self.is_url_accessible
        self._known_states: dict[int, bool] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def known_states(self) -> dict[int, bool]:
        """A snapshot of the last known state of each link, keyed by link id."""
        with self._lock:
            return dict(self._known_states)

    def start(self) -> None:
        """Check immediately, then every interval until :meth:`stop` is called."""
        log.info("[MONITOR] Starting URL monitor with an interval of %s s", self._interval)
        self.check_urls()
        while not self._stopped.wait(self._interval):
            self.check_urls()

    def stop(self) -> None:
        """Ask a running :meth:`start` loop to return."""
        self._stopped.set()

    def check_urls(self) -> list[tuple[Link, bool, bool]]:
        """Check every link once.

        Returns the links whose state changed, each with its previous and
        current state. A link seen for the first time is recorded silently.
        """
        log.info("[MONITOR] Checking the state of the URLs...")
        try:
            links = self._link_repo.get_all_links()
        except Exception as exc:
            log.error("[MONITOR] Error while fetching links to monitor: %s", exc)
            return []

        changes = []
        for link in links:
            current = self._checker(link.long_url)
            with self._lock:
                previous = self._known_states.get(link.id)
                self._known_states[link.id] = current

            if previous is None:
                log.info(
                    "[MONITOR] Initial state for link %s (%s): %s",
                    link.short_code,
                    link.long_url,
                    format_state(current),
                )
                continue

            if current != previous:
                log.warning(
                    "[NOTIFICATION] Link %s (%s) went from %s to %s!",
                    link.short_code,
                    link.long_url,
                    format_state(previous),
                    format_state(current),
                )
                changes.append((link, previous, current))
        log.info("[MONITOR] URL state check finished.")
        return changes

    def is_url_accessible(self, url: str) -> bool:
        """Send a HEAD request to ``url``; a 2xx or 3xx status means accessible."""
        request = urllib.request.Request(url, method="HEAD")
        try:
            with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT) as response:
                status = response.status
        except urllib.error.HTTPError as exc:
            status = exc.code
            exc.close()
        except (OSError, ValueError) as exc:
            log.warning("[MONITOR] Error accessing URL '%s': %s", url, exc)
            return False
        return 200 <= status < 400