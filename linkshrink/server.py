"""Running the HTTP server together with the click workers and URL monitor."""

from __future__ import annotations

import logging
import queue
import signal
import threading
from datetime import timedelta

from werkzeug.serving import make_server

from .api import create_app
from .config import Config
from .monitor import UrlMonitor
from .repository import SqliteClickRepository, SqliteLinkRepository, connect, migrate
from .services import ClickService, LinkService
from .workers import start_click_workers, stop_click_workers

log = logging.getLogger(__name__)

HOST = "0.0.0.0"


def _install_signal_handlers(stop_event: threading.Event) -> dict:
    if threading.current_thread() is not threading.main_thread():
        return {}

    def handle(signum, frame):
        log.info("Shutdown signal received. Stopping the server...")
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run_server(config: Config, stop_event: threading.Event | None = None) -> None:
    """Serve the API until ``stop_event`` is set, or until SIGINT/SIGTERM.

    The database is migrated first; click workers and the URL monitor run
    in background threads and are stopped when the server shuts down.
    """
    conn = connect(config.database.name)
    try:
        migrate(conn)
        log.info("Automatic migration of the models finished.")

        link_repo = SqliteLinkRepository(conn)
        click_repo = SqliteClickRepository(conn)
        log.info("Repositories initialised.")

        link_service = LinkService(link_repo)
        click_service = ClickService(click_repo)
        log.info("Services initialised.")

        events: queue.Queue = queue.Queue(maxsize=config.analytics.buffer_size)
        app = create_app(link_service, click_service, config.server.base_url, events)
        log.info("API routes configured.")

        httpd = make_server(HOST, config.server.port, app, threaded=True)

        workers = start_click_workers(config.analytics.worker_count, events, click_repo)

        interval = timedelta(minutes=config.monitor.interval_minutes)
        monitor = UrlMonitor(link_repo, interval)
        threading.Thread(target=monitor.start, name="url-monitor", daemon=True).start()
        log.info("URL monitor started with an interval of %s.", interval)

        serve_thread = threading.Thread(
            target=httpd.serve_forever, name="http-server", daemon=True
        )
        previous_handlers = {}
        if stop_event is None:
            stop_event = threading.Event()
            previous_handlers = _install_signal_handlers(stop_event)

        serve_thread.start()
        port = config.server.port
        log.info("Server started on port %d", port)
        log.info("API available at: http://localhost:%d/api/v1/links", port)
        log.info("Health check: http://localhost:%d/health", port)

        try:
            stop_event.wait()
        finally:
            log.info("Stopping the server...")
            httpd.shutdown()
            serve_thread.join()
            monitor.stop()
            log.info("Giving the workers time to finish...")
            stop_click_workers(events, workers)
            httpd.server_close()
            _restore_signal_handlers(previous_handlers)
            log.info("Server stopped cleanly")
    finally:
        conn.close()