"""Rate Limiting — sliding window per client under /api.

Invariants:
    - N requests within the window pass; the (N+1)th gets 429 with standard headers
    - Paths outside /api are never limited
    - Hits older than the window no longer count
"""

from userapi.api.middleware.rate_limit import SlidingWindowRateLimiter


async def test_request_over_limit_is_rejected_with_standard_headers(
    make_app, make_client,
):
    async with make_client(make_app(rate_limit_max=3)) as c:
        remaining = []
        for _ in range(3):
            res = await c.get("/api/users")
            assert res.status_code == 200
            remaining.append(res.headers["ratelimit-remaining"])
        blocked = await c.get("/api/users")

    assert remaining == ["2", "1", "0"]
    assert blocked.status_code == 429
    assert blocked.json()["message"] == "Too many requests, please try again later."
    assert blocked.headers["ratelimit-limit"] == "3"
    assert blocked.headers["ratelimit-remaining"] == "0"
    assert blocked.headers["ratelimit-policy"] == "3;w=900"
    assert int(blocked.headers["retry-after"]) > 0
    assert "ratelimit-reset" in blocked.headers


async def test_health_is_not_rate_limited(make_app, make_client):
    async with make_client(make_app(rate_limit_max=1)) as c:
        for _ in range(5):
            res = await c.get("/health")
            assert res.status_code == 200
            assert "ratelimit-limit" not in res.headers


async def test_window_slides():
    now = [1000.0]
    limiter = SlidingWindowRateLimiter(2, 10_000, clock=lambda: now[0])

    assert (await limiter.hit("c")).allowed
    now[0] += 4
    assert (await limiter.hit("c")).allowed
    now[0] += 1
    assert not (await limiter.hit("c")).allowed

    now[0] += 5.5  # first hit is now older than the window
    state = await limiter.hit("c")
    assert state.allowed
    assert state.remaining == 0


async def test_clients_are_counted_separately():
    limiter = SlidingWindowRateLimiter(1, 60_000)
    assert (await limiter.hit("10.0.0.1")).allowed
    assert (await limiter.hit("10.0.0.2")).allowed
    assert not (await limiter.hit("10.0.0.1")).allowed


async def test_rejected_hits_do_not_extend_the_block():
    now = [0.0]
    limiter = SlidingWindowRateLimiter(1, 1_000, clock=lambda: now[0])
    await limiter.hit("c")
    for _ in range(5):
        now[0] += 0.1
        assert not (await limiter.hit("c")).allowed
    now[0] = 1.01
    assert (await limiter.hit("c")).allowed


async def test_reset_reports_seconds_until_oldest_hit_expires():
    now = [0.0]
    limiter = SlidingWindowRateLimiter(5, 60_000, clock=lambda: now[0])
    await limiter.hit("c")
    now[0] = 20.0
    state = await limiter.hit("c")
    assert state.reset_s == 40
    assert state.remaining == 3
