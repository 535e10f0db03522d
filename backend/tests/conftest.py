import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from marketplace.domain.ratings import InMemoryRatingLedger, RatingAggregator, RatingWeights
from marketplace.infra.redis import set_redis_client
from marketplace.main import app
from marketplace.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(None)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via X-User-Id/X-User-Roles headers, which are only
	accepted in dev mode.
	"""
	original_env = settings.environment
	original_auth = settings.relay_auth_required
	settings.environment = "dev"
	settings.relay_auth_required = False
	try:
		yield
	finally:
		settings.environment = original_env
		settings.relay_auth_required = original_auth


@pytest.fixture
def ledger():
	return InMemoryRatingLedger(clock=lambda: 1_700_000_000)


@pytest.fixture
def ratings(ledger):
	aggregator = RatingAggregator(ledger, weights=RatingWeights(verified=2.0, unverified=1.0), page_size=2)
	original = app.state.ratings
	app.state.ratings = aggregator
	try:
		yield aggregator
	finally:
		app.state.ratings = original


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
