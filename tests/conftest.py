"""Pytest configuration and fixtures."""

import json
import sqlite3

import pytest
import requests
from sqlalchemy import Column, Float, Integer, MetaData, String, Table, create_engine, insert


DEVICE_ROWS = [
    {"devmac": "AA:BB:CC:00:00:01", "avg_lat": 38.8977, "avg_lon": -77.0365, "phyname": "IEEE802.11"},
    {"devmac": "AA:BB:CC:00:00:02", "avg_lat": 0.0, "avg_lon": 0.0, "phyname": "Bluetooth"},
    {"devmac": "AA:BB:CC:00:00:03", "avg_lat": 51.5007, "avg_lon": -0.1246, "phyname": "IEEE802.11"},
]


def build_snapshot(path, rows=DEVICE_ROWS):
    """Write a minimal Kismet-style sqlite3 log with KISMET and devices tables."""
    # creator keeps "#" and "?" in the file name out of URL parsing
    engine = create_engine("sqlite://", creator=lambda: sqlite3.connect(str(path)))
    metadata = MetaData()
    kismet = Table(
        "KISMET",
        metadata,
        Column("kismet_version", String),
        Column("db_version", Integer),
        Column("db_module", String),
    )
    devices = Table(
        "devices",
        metadata,
        Column("devmac", String),
        Column("avg_lat", Float),
        Column("avg_lon", Float),
        Column("phyname", String),
    )
    packets = Table(
        "packets",
        metadata,
        Column("sourcemac", String),
        Column("lat", Float),
        Column("lon", Float),
    )
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(insert(kismet).values(kismet_version="2023-07-R1", db_version=9, db_module="kismetlog"))
        if rows:
            conn.execute(insert(devices), rows)
        conn.execute(insert(packets).values(sourcemac="AA:BB:CC:00:00:09", lat=1.5, lon=2.5))
    engine.dispose()
    return path


@pytest.fixture
def snapshot_path(tmp_path):
    """A Kismet sqlite3 log with three devices."""
    return str(build_snapshot(tmp_path / "Kismet-test.kismet"))


def make_response(status_code=200, payload=None, text=None, url="http://kismet.local:2501/"):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response.url = url
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    return response


class FakeSession:
    """Stands in for requests.Session; replays queued responses in order."""

    def __init__(self, responses=None):
        self.auth = None
        self.headers = {}
        self.calls = []
        self.responses = list(responses or [])
        self.closed = 0

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"Unexpected request {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed += 1


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def kismet_response():
    return make_response


@pytest.fixture
def snapshot_factory(tmp_path):
    """Build a snapshot with custom device rows."""

    def _build(rows=DEVICE_ROWS, name="custom.kismet"):
        return str(build_snapshot(tmp_path / name, rows))

    return _build
