from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from mealdecide.admission.config import RateLimitConfig
from mealdecide.admission.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from mealdecide.admission.request_id import RequestIdMiddleware
from mealdecide.errors import install_error_handlers


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _app(limiter: FixedWindowRateLimiter, trust_forwarded_for: bool = True) -> FastAPI:
    config = RateLimitConfig(
        enabled=True, default_per_minute=2, auth_per_minute=1, trust_forwarded_for=trust_forwarded_for,
    )
    app = FastAPI()
    install_error_handlers(app)
    app.add_middleware(RateLimitMiddleware, config=config, limiter=limiter)
    app.add_middleware(RequestIdMiddleware)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/things")
    def things():
        return []

    @app.post("/auth/login")
    def login():
        return {"token": "t"}

    return app


# ── Limiter ──────────────────────────────────────────────────────────────


def test_limiter_allows_up_to_limit_then_blocks():
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    assert [limiter.allow("api", "1.2.3.4", 2) for _ in range(3)] == [True, True, False]


def test_limiter_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(window_seconds=60, clock=clock)
    limiter.allow("api", "ip", 1)
    assert limiter.allow("api", "ip", 1) is False
    clock.now += 60
    assert limiter.allow("api", "ip", 1) is True


def test_limiter_keys_are_independent():
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    assert limiter.allow("api", "a", 1)
    assert limiter.allow("api", "b", 1)
    assert limiter.allow("auth", "a", 1)


def test_limiter_reset():
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    limiter.allow("api", "a", 1)
    limiter.reset()
    assert limiter.allow("api", "a", 1)


# ── Middleware ───────────────────────────────────────────────────────────


def test_middleware_rejects_with_error_envelope():
    client = TestClient(_app(FixedWindowRateLimiter(clock=FakeClock())))
    assert client.get("/things").status_code == 200
    assert client.get("/things").status_code == 200

    resp = client.get("/things", headers={"X-Request-Id": "req-42"})
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"
    body = resp.json()
    assert body["status"] == 429
    assert body["error"] == "Too Many Requests"
    assert body["message"] == "Too many requests"
    assert body["path"] == "/things"
    assert body["requestId"] == "req-42"


def test_auth_paths_use_stricter_bucket():
    client = TestClient(_app(FixedWindowRateLimiter(clock=FakeClock())))
    assert client.post("/auth/login").status_code == 200
    assert client.post("/auth/login").status_code == 429
    # The api bucket is untouched.
    assert client.get("/things").status_code == 200


def test_health_is_exempt():
    client = TestClient(_app(FixedWindowRateLimiter(clock=FakeClock())))
    for _ in range(5):
        assert client.get("/health").status_code == 200


def test_forwarded_for_identifies_client():
    client = TestClient(_app(FixedWindowRateLimiter(clock=FakeClock())))
    for _ in range(2):
        client.get("/things", headers={"X-Forwarded-For": "10.0.0.1"})
    assert client.get("/things", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}).status_code == 429
    assert client.get("/things", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200


def test_disabled_limiter_passes_everything():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, config=RateLimitConfig(enabled=False, default_per_minute=1))

    @app.get("/things")
    def things():
        return []

    client = TestClient(app)
    assert all(client.get("/things").status_code == 200 for _ in range(3))


def test_expired_windows_are_evicted():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(window_seconds=60, shards=1, clock=clock)
    for n in range(50):
        limiter.allow("api", f"10.0.0.{n}", 5)
    assert limiter.tracked_keys() == 50

    clock.now += 61
    limiter.allow("api", "10.0.1.1", 5)
    assert limiter.tracked_keys() == 1


def test_live_windows_survive_eviction():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(window_seconds=60, shards=1, clock=clock)
    limiter.allow("api", "old", 1)
    clock.now += 30
    limiter.allow("api", "recent", 1)
    clock.now += 31
    limiter.allow("api", "new", 1)
    assert limiter.tracked_keys() == 2
    # "recent" is still inside its window, so its count is kept
    assert limiter.allow("api", "recent", 1) is False


def test_untrusted_forwarded_for_is_ignored():
    client = TestClient(_app(FixedWindowRateLimiter(clock=FakeClock()), trust_forwarded_for=False))
    assert client.get("/things", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    assert client.get("/things", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
    # Rotating the header does not open a new window
    assert client.get("/things", headers={"X-Forwarded-For": "10.0.0.3"}).status_code == 429
