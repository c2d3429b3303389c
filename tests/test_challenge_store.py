"""Unit tests for the in-process TTL store."""

import pytest

from app.auth.challenge_store import ChallengeStore
from app.auth.dependencies import get_challenge_store


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_value_readable_until_expiry() -> None:
    clock = FakeClock()
    store = ChallengeStore(clock=clock)
    store.put("login:42", "nonce", ttl=30)

    clock.now += 29
    assert store.get("login:42") == "nonce"

    clock.now += 1
    assert store.get("login:42") is None
    assert len(store) == 0


def test_pop_is_single_use() -> None:
    store = ChallengeStore(clock=FakeClock())
    store.put("login:42", {"code": "123456"}, ttl=60)

    assert store.pop("login:42") == {"code": "123456"}
    assert store.pop("login:42") is None


def test_pop_of_expired_entry_returns_none() -> None:
    clock = FakeClock()
    store = ChallengeStore(clock=clock)
    store.put("k", "v", ttl=5)
    clock.now += 10
    assert store.pop("k") is None


def test_purge_expired_only_drops_stale_entries() -> None:
    clock = FakeClock()
    store = ChallengeStore(clock=clock)
    store.put("short", 1, ttl=5)
    store.put("long", 2, ttl=500)

    clock.now += 10
    assert store.purge_expired() == 1
    assert store.get("long") == 2


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ChallengeStore().put("k", "v", ttl=0)


def test_dependency_returns_process_wide_store() -> None:
    assert get_challenge_store() is get_challenge_store()
