import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from marketplace.domain.presence import DisabledPresenceStore, InMemoryPresenceStore, RedisPresenceStore
from marketplace.domain.presence.store import presence_key
from marketplace.infra.redis import RedisProxy


class BrokenRedis:
	"""Client whose every call fails like an unreachable server."""

	async def set(self, *args, **kwargs):
		raise RedisConnectionError("connection refused")

	async def get(self, *args, **kwargs):
		raise RedisConnectionError("connection refused")

	def pipeline(self, *args, **kwargs):
		raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_in_memory_last_announce_wins():
	store = InMemoryPresenceStore()

	await store.announce("+15550001", "conn-a")
	await store.announce("+15550001", "conn-b")

	assert await store.resolve("+15550001") == "conn-b"
	assert len(store) == 1


@pytest.mark.asyncio
async def test_in_memory_release_is_scoped_to_connection():
	store = InMemoryPresenceStore()
	await store.announce("+15550001", "conn-a")
	await store.announce("+15550001", "conn-b")

	# A stale disconnect from the first connection must not evict the newer one
	assert await store.release("+15550001", "conn-a") is False
	assert await store.resolve("+15550001") == "conn-b"

	assert await store.release("+15550001", "conn-b") is True
	assert await store.resolve("+15550001") is None


@pytest.mark.asyncio
async def test_in_memory_resolve_unknown_identity():
	store = InMemoryPresenceStore()
	assert await store.resolve("+15559999") is None
	assert await store.release("+15559999", "conn-x") is False


@pytest.mark.asyncio
async def test_redis_announce_writes_plain_key(fake_redis):
	store = RedisPresenceStore(fake_redis)

	await store.announce("+15550001", "conn-a")

	assert await fake_redis.get(presence_key("+15550001")) == "conn-a"
	assert await fake_redis.ttl(presence_key("+15550001")) == -1
	assert await store.resolve("+15550001") == "conn-a"


@pytest.mark.asyncio
async def test_redis_announce_applies_ttl(fake_redis):
	store = RedisPresenceStore(fake_redis, ttl_seconds=60)

	await store.announce("+15550001", "conn-a")

	ttl = await fake_redis.ttl(presence_key("+15550001"))
	assert 0 < ttl <= 60


@pytest.mark.asyncio
async def test_redis_release_only_removes_matching_binding(fake_redis):
	store = RedisPresenceStore(fake_redis)
	await store.announce("+15550001", "conn-a")
	await store.announce("+15550001", "conn-b")

	assert await store.release("+15550001", "conn-a") is False
	assert await fake_redis.get(presence_key("+15550001")) == "conn-b"

	assert await store.release("+15550001", "conn-b") is True
	assert await fake_redis.exists(presence_key("+15550001")) == 0


@pytest.mark.asyncio
async def test_redis_release_missing_key_is_noop(fake_redis):
	store = RedisPresenceStore(fake_redis)
	assert await store.release("+15550001", "conn-a") is False


@pytest.mark.asyncio
async def test_redis_errors_are_absorbed():
	store = RedisPresenceStore(BrokenRedis())

	await store.announce("+15550001", "conn-a")
	assert await store.resolve("+15550001") is None
	assert await store.release("+15550001", "conn-a") is False


@pytest.mark.asyncio
async def test_store_over_disconnected_proxy_degrades():
	store = RedisPresenceStore(RedisProxy())

	await store.announce("+15550001", "conn-a")
	assert await store.resolve("+15550001") is None
	assert await store.release("+15550001", "conn-a") is False


@pytest.mark.asyncio
async def test_disabled_store_is_inert():
	store = DisabledPresenceStore()

	await store.announce("+15550001", "conn-a")
	assert await store.resolve("+15550001") is None
	assert await store.release("+15550001", "conn-a") is False
