"""Identity-to-connection presence store.

Maps a stable identity (a phone number) to the socket id of its live connection.
The last announce for an identity wins. A release is scoped to the connection
being released, so a late disconnect never evicts a newer session.

Store failures never propagate: announce/release degrade to no-ops and resolve
to ``None``, with the error logged and counted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol

from redis.exceptions import RedisError, WatchError

from marketplace.domain.errors import TransientStoreError
from marketplace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

KEY_PREFIX = "presence:phone:"

_STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError, TransientStoreError)


class PresenceStore(Protocol):
	async def announce(self, identity: str, connection_id: str) -> None:
		...

	async def resolve(self, identity: str) -> Optional[str]:
		...

	async def release(self, identity: str, connection_id: str) -> bool:
		...


def presence_key(identity: str) -> str:
	return f"{KEY_PREFIX}{identity}"


class InMemoryPresenceStore:
	"""Process-local store for tests and single-node development."""

	def __init__(self) -> None:
		self._bindings: Dict[str, str] = {}

	async def announce(self, identity: str, connection_id: str) -> None:
		self._bindings[identity] = connection_id
		obs_metrics.inc_presence_announce()

	async def resolve(self, identity: str) -> Optional[str]:
		return self._bindings.get(identity)

	async def release(self, identity: str, connection_id: str) -> bool:
		removed = self._bindings.get(identity) == connection_id
		if removed:
			del self._bindings[identity]
		obs_metrics.inc_presence_release(removed)
		return removed

	def __len__(self) -> int:
		return len(self._bindings)


class RedisPresenceStore:
	"""Presence bindings kept as plain string keys in Redis (SET/GET/DEL)."""

	def __init__(self, client, *, ttl_seconds: int = 0) -> None:
		self._client = client
		self._ttl = max(0, int(ttl_seconds))

	async def announce(self, identity: str, connection_id: str) -> None:
		key = presence_key(identity)
		try:
			if self._ttl:
				await self._client.set(key, connection_id, ex=self._ttl)
			else:
				await self._client.set(key, connection_id)
		except _STORE_ERRORS:
			self._absorb("announce")
			return
		obs_metrics.inc_presence_announce()

	async def resolve(self, identity: str) -> Optional[str]:
		try:
			value = await self._client.get(presence_key(identity))
		except _STORE_ERRORS:
			self._absorb("resolve")
			return None
		if value is None:
			return None
		return value.decode() if isinstance(value, bytes) else str(value)

	async def release(self, identity: str, connection_id: str) -> bool:
		key = presence_key(identity)
		try:
			async with self._client.pipeline(transaction=True) as pipe:
				await pipe.watch(key)
				current = await pipe.get(key)
				if isinstance(current, bytes):
					current = current.decode()
				if current != connection_id:
					obs_metrics.inc_presence_release(False)
					return False
				pipe.multi()
				pipe.delete(key)
				await pipe.execute()
		except WatchError:
			# A newer announce landed between GET and DEL; it wins
			obs_metrics.inc_presence_release(False)
			return False
		except _STORE_ERRORS:
			self._absorb("release")
			return False
		obs_metrics.inc_presence_release(True)
		return True

	@staticmethod
	def _absorb(op: str) -> None:
		obs_metrics.inc_presence_store_error(op)
		logger.warning("presence store %s failed; degrading", op, exc_info=True)


class DisabledPresenceStore:
	"""Stand-in used when no Redis connection could be established."""

	async def announce(self, identity: str, connection_id: str) -> None:
		obs_metrics.inc_presence_store_error("announce")
		logger.debug("presence store disabled; announce dropped")

	async def resolve(self, identity: str) -> Optional[str]:
		obs_metrics.inc_presence_store_error("resolve")
		logger.debug("presence store disabled; resolve skipped")
		return None

	async def release(self, identity: str, connection_id: str) -> bool:
		logger.debug("presence store disabled; release skipped")
		return False
