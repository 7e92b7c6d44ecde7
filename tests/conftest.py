from __future__ import annotations

import os
import time
from collections.abc import Callable, Generator

import pytest

from todolist.bootstrap import reset_store_for_testing
from todolist.observability import reset_metrics


def _wait_until(timeout_s: float, pause_s: float, check: Callable[[], bool]) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if check():
            return True
        time.sleep(pause_s)
    return False


def _redis_ping(url: str) -> bool:
    try:
        import redis

        r = redis.Redis.from_url(url, socket_connect_timeout=0.5)
        return bool(r.ping())
    except Exception:
        return False


@pytest.fixture(autouse=True)
def _isolated_process_state() -> Generator[None, None, None]:
    """Fresh metrics and no cached store singleton for every test."""
    reset_metrics()
    reset_store_for_testing()
    yield
    reset_store_for_testing()


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Provide a Redis URL, preferring REDIS_URL, then localhost.

    Skips the requesting test when neither is reachable.
    """
    env_url = os.getenv("REDIS_URL")
    if env_url and _wait_until(3.0, 0.2, lambda: _redis_ping(env_url)):
        return env_url

    local_url = "redis://localhost:6379/0"
    if _wait_until(1.0, 0.2, lambda: _redis_ping(local_url)):
        return local_url

    pytest.skip("Redis not available; set REDIS_URL or start a local Redis")


@pytest.fixture()
def unique_prefix() -> str:
    # millisecond prefix to avoid collisions between runs
    return f"test:todolist:{int(time.time() * 1000)}"
