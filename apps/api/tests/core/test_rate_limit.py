"""Tests for rate limiting on the bundling endpoints.

SlowAPI keys on the client address; every request from the test client
shares one bucket. Requests rejected with 400 still count.
"""

from httpx import AsyncClient


class TestBundleRateLimit:
    async def test_first_request_is_accepted(self, client: AsyncClient) -> None:
        res = await client.get("/bundler")
        assert res.status_code != 429

    async def test_429_returned_after_exceeding_limit(self, client: AsyncClient) -> None:
        """The default limit is "10/minute" so 12 requests should trigger 429."""
        statuses = [(await client.get("/v2/bundler")).status_code for _ in range(12)]
        assert 429 in statuses, f"Expected 429 in statuses but got: {statuses}"

    async def test_health_is_not_rate_limited(self, client: AsyncClient) -> None:
        for _ in range(15):
            r = await client.get("/health")
            assert r.status_code != 429
