from fnmatch import fnmatch
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.storage.repo import Repo


class FakeRedis:
    """In-memory stand-in for the handful of redis calls the repo makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.writes = []

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex
        self.writes.append((key, value))

    def get(self, key):
        return self.data.get(key)

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if fnmatch(k, match)]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def repo(fake_redis):
    return Repo(client=fake_redis, ttl_seconds=3600)
