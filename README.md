# linkshrink

A small URL-shortening service. It comes with:

- an HTTP API, built with Flask, to create short links, follow them and read
  their click statistics;
- background click recording: each redirect puts a click event on a queue,
  and a pool of worker threads writes the events to the database;
- a periodic monitor that sends a HEAD request to each long URL and logs any
  change between accessible and inaccessible;
- a command-line tool to create links, create the database tables, read
  statistics and run the server.

Links and clicks are stored in a SQLite database.

## Installation

```
pip install .
```

This installs the `linkshrink` command.

## Configuration

The configuration is read from `config.yaml` (or `config.yml`) in the
directory `configs`, relative to the current directory. Pass
`--config-dir DIR` to the command to read it from somewhere else. If no file
is found, these defaults are used:

```yaml
server:
  port: 8080
  base_url: "http://localhost:8080"
database:
  name: "url_shortener.db"
analytics:
  buffer_size: 1000
  worker_count: 5
monitor:
  interval_minutes: 5
```

Missing keys take their defaults. A file that cannot be parsed, a value of
the wrong type, or a port outside 1–65535 raises `linkshrink.config.ConfigError`.
The command logs that error, and the subcommand then fails with
"configuration not loaded". A buffer size, worker count or monitor interval
of zero or less is replaced by its default.

## Command line

Create the `links` and `clicks` tables. Run this before `create` or `stats`
on a new database:

```
linkshrink migrate
```

Shorten a URL:

```
linkshrink create --url="https://www.example.com/search?q=python"
```

The URL must be an absolute URI with a scheme, or an absolute path. The
command prints the generated six-character code and the full short URL, built
from `server.base_url`.

Show the click count for a short code:

```
linkshrink stats --code="xyz123"
```

Start the API server:

```
linkshrink run-server
```

The server creates the tables if they are missing. It also starts the click
workers (`analytics.worker_count` threads, reading a queue of
`analytics.buffer_size` events) and the URL monitor (every
`monitor.interval_minutes`). It listens on all interfaces at `server.port`
and shuts down cleanly on SIGINT or SIGTERM. Queued clicks are written to
the database before it exits.

Every command exits with status 1 on error, for example an unknown short
code, and 0 on success.

## HTTP API

| Method | Path                           | Description                                   |
|--------|--------------------------------|-----------------------------------------------|
| GET    | `/health`                      | Returns `{"status": "ok"}`                    |
| POST   | `/api/v1/links`                | Body `{"long_url": "..."}`; returns 201       |
| GET    | `/api/v1/links/<code>`         | 302 redirect to the long URL, records a click |
| GET    | `/api/v1/links/<code>/stats`   | `short_code`, `long_url` and `total_clicks`   |
| GET    | `/api/stats/<code>`            | Same as the stats route above                 |

Creating a link returns its `short_code`, `long_url` and `full_short_url`.
The request gets a 400 if the body is not a JSON object or if `long_url` is
missing or is not a valid URL. An unknown code returns 404 with an `error`
message. A redirect queues its click without waiting. If the queue is full,
the click is dropped with a warning and the redirect still goes through. The
client IP stored with a click is taken from `X-Forwarded-For` if present,
then from `X-Real-IP`, then from the connection's address.

## Using it as a library

```python
from linkshrink.config import load_config
from linkshrink.repository import connect, migrate, SqliteLinkRepository, SqliteClickRepository
from linkshrink.services import LinkService, ClickService, get_link_stats

config = load_config("configs")
conn = connect(config.database.name)
migrate(conn)

links = LinkService(SqliteLinkRepository(conn))
clicks = ClickService(SqliteClickRepository(conn))

link = links.create_link("https://www.example.com/")
found, total = get_link_stats(links, clicks, link.short_code)
```

`LinkService.create_link` raises `linkshrink.services.ShortCodeError` if all
five generated codes are already taken. Looking up an unknown code raises
`linkshrink.repository.RecordNotFound`.

Other entry points:

- `linkshrink.api.create_app(link_service, click_service, base_url, events)`
  builds the Flask application. `events` is an optional `queue.Queue` that
  receives `ClickEvent`s.
- `linkshrink.workers.start_click_workers(worker_count, events, click_repo)`
  starts the writer threads. `stop_click_workers(events, threads)` lets them
  drain the queue and waits for them to finish.
- `linkshrink.monitor.UrlMonitor(link_repo, interval, checker)` runs the
  reachability checks. Use `start()` and `stop()` to control the loop.
  `check_urls()` runs a single pass and returns the links whose state
  changed. `checker` optionally replaces the HEAD request.
- `linkshrink.server.run_server(config, stop_event)` runs the full server
  until the event is set.

## What it does not do

- There is no way to delete or edit a link. Links are only created and read.
- The monitor only writes state changes to the log. It sends no
  notifications anywhere else.
- The API has no authentication or rate limiting.

## Running the tests

```
pip install ".[test]"
pytest
```