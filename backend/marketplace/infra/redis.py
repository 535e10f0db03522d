"""Redis connection management.

Provides a stable proxy object so imports like `from marketplace.infra.redis import redis_client`
always reference the same proxy instance. The underlying client is installed by the
connection bootstrap at startup and can be swapped at runtime (e.g., to fakeredis in
tests) without breaking previously imported references.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as redis

from marketplace.domain.errors import TransientStoreError
from marketplace.infra.bootstrap import BootstrapConfig, BootstrapResult, ConnectionBootstrap

logger = logging.getLogger(__name__)


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client.

	While no client is installed (before startup, or after every bootstrap attempt
	failed) attribute access raises TransientStoreError so callers can degrade.
	"""

	def __init__(self, client: Optional[redis.Redis] = None):
		self._client: Optional[redis.Redis] = client

	def set_client(self, client: Optional[redis.Redis]) -> None:
		self._client = client

	@property
	def available(self) -> bool:
		return self._client is not None

	# Fallback: delegate everything else to the underlying client
	def __getattr__(self, item):
		client = self.__dict__.get("_client")
		if client is None:
			raise TransientStoreError("redis client not connected")
		return getattr(client, item)


redis_client: RedisProxy = RedisProxy()


def set_redis_client(client: Optional[redis.Redis]) -> None:
	redis_client.set_client(client)


async def connect(config: Optional[BootstrapConfig] = None, bootstrap: Optional[ConnectionBootstrap] = None) -> BootstrapResult:
	"""Run the bootstrap and install whatever client it produced (possibly none)."""
	bootstrap = bootstrap or ConnectionBootstrap()
	result = await bootstrap.connect(config or BootstrapConfig.from_settings())
	set_redis_client(result.client)
	if not result.connected:
		logger.error("all redis connection attempts failed; presence relay running degraded")
	return result


async def close() -> None:
	client = redis_client.__dict__.get("_client")
	if client is None:
		return
	set_redis_client(None)
	await client.aclose()
	logger.info("redis connection closed")
