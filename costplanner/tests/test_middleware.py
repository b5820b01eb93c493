"""
Tests for rate limiting and request size limiting.
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from costplanner.middleware.rate_limiter import RateLimiter, RateLimitMiddleware
from costplanner.middleware.request_size_limiter import (
    MAX_ARCHITECTURE_SERVICES,
    MAX_REQUEST_BODY_SIZE,
    RequestSizeLimiterMiddleware,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limited_client(clock):
    """App allowing two pings per window."""
    app = FastAPI()

    @app.get('/ping')
    async def ping():
        return {'status': 'ok'}

    @app.get('/open')
    async def open_route():
        return {'status': 'ok'}

    app.add_middleware(RateLimitMiddleware, limits={'/ping': 2}, limiter=RateLimiter(60, clock=clock))
    return TestClient(app)


@pytest.fixture
def size_limited_client():
    """App echoing architecture sizes behind the size limiter."""
    app = FastAPI()

    @app.post('/api/estimate')
    async def estimate(payload: dict):
        return {'status': 'ok', 'services': len(payload['architecture']['services'])}

    app.add_middleware(RequestSizeLimiterMiddleware)
    return TestClient(app)


def test_rate_limiter_window(clock):
    """Requests over the limit are refused until the window slides."""
    limiter = RateLimiter(60, clock=clock)

    assert limiter.is_allowed('ip:1.2.3.4', '/api/estimate', 2)
    assert limiter.is_allowed('ip:1.2.3.4', '/api/estimate', 2)
    assert not limiter.is_allowed('ip:1.2.3.4', '/api/estimate', 2)
    assert limiter.get_remaining('ip:1.2.3.4', '/api/estimate', 2) == 0

    # Limits are tracked per client and per endpoint
    assert limiter.is_allowed('ip:5.6.7.8', '/api/estimate', 2)
    assert limiter.is_allowed('ip:1.2.3.4', '/api/projections', 2)

    clock.now += 61
    assert limiter.get_remaining('ip:1.2.3.4', '/api/estimate', 2) == 2
    assert limiter.is_allowed('ip:1.2.3.4', '/api/estimate', 2)


def test_rate_limit_triggers_429(limited_client, clock):
    """The request after the limit gets 429 with a retry hint."""
    assert limited_client.get('/ping').status_code == 200
    assert limited_client.get('/ping').status_code == 200

    response = limited_client.get('/ping')
    assert response.status_code == 429
    assert response.headers['Retry-After'] == '60'
    assert response.json()['error'] == 'rate_limited'

    clock.now += 61
    assert limited_client.get('/ping').status_code == 200


def test_allowed_responses_report_remaining_quota(limited_client):
    """Limited routes tell the client how many requests are left in the window."""
    first = limited_client.get('/ping')
    assert first.headers['X-RateLimit-Limit'] == '2'
    assert first.headers['X-RateLimit-Remaining'] == '1'
    assert limited_client.get('/ping').headers['X-RateLimit-Remaining'] == '0'
    assert 'X-RateLimit-Remaining' not in limited_client.get('/open').headers


def test_unlimited_routes_pass_through(limited_client):
    """Routes without a configured limit are never throttled."""
    for _ in range(5):
        assert limited_client.get('/open').status_code == 200


def test_forwarded_clients_are_limited_separately(limited_client):
    """The first X-Forwarded-For hop identifies proxied clients."""
    for _ in range(2):
        assert limited_client.get('/ping', headers={'X-Forwarded-For': '10.0.0.1, 172.16.0.1'}).status_code == 200
    assert limited_client.get('/ping', headers={'X-Forwarded-For': '10.0.0.1'}).status_code == 429
    assert limited_client.get('/ping', headers={'X-Forwarded-For': '10.0.0.2'}).status_code == 200


def test_small_payload_passes(size_limited_client):
    """Payloads within limits reach the route."""
    payload = {'architecture': {'services': [{'service_id': 's3'}] * 3}}
    response = size_limited_client.post('/api/estimate', json=payload)
    assert response.status_code == 200
    assert response.json()['services'] == 3


def test_oversized_body_is_rejected(size_limited_client):
    """Bodies over 256 KB get 413."""
    payload = {'architecture': {'services': []}, 'padding': 'x' * (MAX_REQUEST_BODY_SIZE + 1)}
    response = size_limited_client.post(
        '/api/estimate',
        content=json.dumps(payload),
        headers={'Content-Type': 'application/json'},
    )
    assert response.status_code == 413
    assert response.json()['error'] == 'request_too_large'


def test_architecture_service_limit():
    """Architectures over the service limit are reported; malformed bodies are left to validation."""
    services = [{'service_id': 's3'}] * (MAX_ARCHITECTURE_SERVICES + 1)
    assert 'Architecture too large' in RequestSizeLimiterMiddleware._validate_payload({'architecture': {'services': services}})
    assert RequestSizeLimiterMiddleware._validate_payload({'architecture': {'services': services[:10]}}) is None
    assert RequestSizeLimiterMiddleware._validate_payload(['not', 'a', 'dict']) is None
    assert RequestSizeLimiterMiddleware._validate_payload({'architecture': 'flat'}) is None
