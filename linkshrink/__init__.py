"""URL shortener with a Flask API, SQLite storage, background click recording and link monitoring."""

__version__ = "0.1.0"