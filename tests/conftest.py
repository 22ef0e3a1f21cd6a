"""
Shared fixtures.

  - clock: FakeClock whose sleep() advances time instantly
  - make_response: build a FakeResponse
  - session_factory: FakeSession replaying queued responses/exceptions
  - settings: Settings with no credentials and a temporary database
"""

from __future__ import annotations

import json

import pytest
import requests

from config import Settings


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=None, headers=None):
        self.status_code = status_code
        self.headers = headers or {}
        if text is None:
            text = "" if json_data is None else json.dumps(json_data)
        self.text = text
        self.content = text.encode()

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[tuple[str, str, dict]] = []

    def queue(self, *results):
        self.results.extend(results)

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if not self.results:
            raise AssertionError(f"Unexpected {method} {url}")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def settings(tmp_path):
    return Settings(
        steam_min_interval=10.0,
        skinport_min_interval=37.5,
        database=tmp_path / "trackers.db",
    )
