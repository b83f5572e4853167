"""Read Kismet device records from the REST API or a sqlite3 log."""

__version__ = "0.1.0"
