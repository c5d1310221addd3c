"""
Client Files Portal - Rate Limiting Tests

Run with: pytest tests/test_rate_limit.py -v
"""

from portal.gateway.ratelimit import InMemoryRateLimiter
from tests.conftest import DEFAULT_PASSWORD, login_headers


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# =============================================================================
# LIMITER UNIT TESTS
# =============================================================================

class TestInMemoryRateLimiter:

    def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())

        results = [limiter.hit("k", 3, 60) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[-1].retry_after == 60

    def test_window_resets(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for _ in range(3):
            limiter.hit("k", 2, 60)

        clock.now += 61

        assert limiter.hit("k", 2, 60).allowed is True

    def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        limiter.hit("k", 1, 60)

        clock.now += 45

        assert limiter.hit("k", 1, 60).retry_after == 15

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        limiter.hit("a", 1, 60)

        assert limiter.hit("b", 1, 60).allowed is True
        assert limiter.hit("a", 1, 60).allowed is False

    def test_sweep_and_reset(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        limiter.hit("a", 1, 10)
        limiter.hit("b", 1, 100)

        clock.now += 50

        assert limiter.sweep() == 1
        limiter.reset()
        assert limiter.hit("b", 1, 100).allowed is True

    def test_hit_evicts_stale_keys(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock, sweep_interval=60)
        for n in range(100):
            limiter.hit(f"ip:10.0.0.{n}", 5, 30)
        limiter.hit("ip:10.0.1.1", 5, 900)

        clock.now += 61
        limiter.hit("ip:192.168.0.1", 5, 30)

        # Only the long window and the new key survive
        assert len(limiter) == 2

    def test_eviction_waits_for_interval(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock, sweep_interval=60)
        limiter.hit("a", 5, 10)

        clock.now += 20
        limiter.hit("b", 5, 10)

        assert len(limiter) == 2

    def test_headers(self):
        result = InMemoryRateLimiter(clock=FakeClock()).hit("k", 5, 60)

        headers = result.headers()

        assert headers["X-RateLimit-Limit"] == "5"
        assert headers["X-RateLimit-Remaining"] == "4"
        assert headers["X-RateLimit-Reset"].startswith("2023-11-14T22:14:20")


# =============================================================================
# ENDPOINT LIMITS
# =============================================================================

class TestEndpointLimits:

    def test_login_limited_after_five_attempts(self, limited_client, regular_user):
        body = {"email": regular_user.email, "password": DEFAULT_PASSWORD}
        for _ in range(5):
            response = limited_client.post("/api/auth/login", json=body)
            assert response.status_code == 200
            assert "X-RateLimit-Remaining" in response.headers

        response = limited_client.post("/api/auth/login", json=body)

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "Too many login attempts. Please try again in 15 minutes."
        assert data["code"] == "rate_limited"
        assert data["retryAfter"].endswith(" seconds")
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_login_limit_is_per_ip(self, limited_client, regular_user):
        body = {"email": regular_user.email, "password": DEFAULT_PASSWORD}
        for _ in range(5):
            limited_client.post("/api/auth/login", json=body)

        response = limited_client.post(
            "/api/auth/login", json=body, headers={"X-Forwarded-For": "198.51.100.9"}
        )

        assert response.status_code == 200

    def test_forgot_password_limited_after_three(self, limited_client):
        for _ in range(3):
            response = limited_client.post(
                "/api/auth/forgot-password", json={"email": "nobody@test.com"}
            )
            assert response.status_code == 200

        response = limited_client.post(
            "/api/auth/forgot-password", json={"email": "nobody@test.com"}
        )

        assert response.status_code == 429
        assert response.json()["error"] == (
            "Too many password reset requests. Please try again in 1 hour."
        )

    def test_verification_limit_is_per_user(self, limited_client, regular_user, manager):
        user_headers = login_headers(limited_client, regular_user)
        manager_headers = login_headers(limited_client, manager)
        for _ in range(5):
            limited_client.post("/api/auth/send-verification", headers=user_headers)

        blocked = limited_client.post("/api/auth/send-verification", headers=user_headers)
        other = limited_client.post("/api/auth/send-verification", headers=manager_headers)

        assert blocked.status_code == 429
        assert other.status_code == 200
