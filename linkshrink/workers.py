"""Background threads that persist click events."""

from __future__ import annotations

import logging
import queue
import threading

from .models import ClickEvent
from .repository import ClickRepository

log = logging.getLogger(__name__)

_STOP = None


def _click_worker(events: queue.Queue, click_repo: ClickRepository) -> None:
    while True:
        event: ClickEvent | None = events.get()
        try:
            if event is _STOP:
                return
            try:
                click_repo.create_click(event.to_click())
            except Exception as exc:  # a failed click is logged and dropped
                log.error(
                    "Failed to save click for link %s (user agent: %s, IP: %s): %s",
                    event.link_id,
                    event.user_agent,
                    event.ip_address,
                    exc,
                )
            else:
                log.debug("Click recorded for link %s", event.link_id)
        finally:
            events.task_done()


def start_click_workers(
    worker_count: int, events: queue.Queue, click_repo: ClickRepository
) -> list[threading.Thread]:
    """Start ``worker_count`` daemon threads that store events read from ``events``."""
    log.info("Starting %d click worker(s)...", worker_count)
    threads = []
    for number in range(worker_count):
        thread = threading.Thread(
            target=_click_worker,
            args=(events, click_repo),
            name=f"click-worker-{number + 1}",
            daemon=True,
        )
        thread.start()
        threads.append(thread)
    return threads


def stop_click_workers(events: queue.Queue, threads: list[threading.Thread]) -> None:
    """Let the workers drain ``events`` and then wait for them to finish."""
    for _ in threads:
        events.put(_STOP)
    for thread in threads:
        thread.join()