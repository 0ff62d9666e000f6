import pytest

from collector.app.security import CredentialStore, RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_credential_store_verifies_and_replaces():
    store = CredentialStore("admin", "old-secret")

    assert store.verify("admin", "old-secret")
    assert not store.verify("admin", "wrong")
    assert not store.verify("root", "old-secret")

    store.replace("new-secret")

    assert store.verify("admin", "new-secret")
    assert not store.verify("admin", "old-secret")


def test_credential_store_rejects_empty_password():
    store = CredentialStore("admin", "secret")

    with pytest.raises(ValueError):
        store.replace("")

    assert store.verify("admin", "secret")


def test_rate_limiter_blocks_after_max_requests_within_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

    assert [limiter.hit("10.0.0.1") for _ in range(4)] == [True, True, True, False]
    # Other clients keep their own budget
    assert limiter.hit("10.0.0.2")


def test_rate_limiter_resets_after_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert limiter.hit("10.0.0.1")
    assert not limiter.hit("10.0.0.1")

    clock.now += 60

    assert limiter.hit("10.0.0.1")


def test_rate_limiter_reset_clears_state():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.hit("10.0.0.1")

    limiter.reset()

    assert limiter.hit("10.0.0.1")
