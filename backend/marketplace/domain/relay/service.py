"""Message relay: resolve a recipient's live connection and forward to it.

Delivery is fire-and-forget. Messages for identities without a live binding are
dropped and the sender is not told; there is no offline mailbox and no retry.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from marketplace.domain.presence.store import PresenceStore
from marketplace.obs import metrics as obs_metrics

from .models import RelayMessage

logger = logging.getLogger(__name__)


class RelayTransport(Protocol):
	async def send(self, connection_id: str, payload: dict) -> None:
		...


class MessageRelay:
	def __init__(self, store: PresenceStore, transport: RelayTransport) -> None:
		self._store = store
		self._transport = transport

	@property
	def store(self) -> PresenceStore:
		return self._store

	@store.setter
	def store(self, store: PresenceStore) -> None:
		self._store = store

	async def announce(self, identity: str, connection_id: str) -> None:
		await self._store.announce(identity, connection_id)
		logger.debug("relay announce sid=%s", connection_id)

	async def release(self, identity: str, connection_id: str) -> bool:
		removed = await self._store.release(identity, connection_id)
		logger.debug("relay release sid=%s removed=%s", connection_id, removed)
		return removed

	async def resolve(self, identity: str) -> Optional[str]:
		return await self._store.resolve(identity)

	async def deliver(self, message: RelayMessage, *, origin: Optional[str] = None) -> bool:
		"""Forward ``{from, message}`` to the recipient's connection. Returns delivered.

		A message whose recipient resolves to ``origin`` (the sending connection)
		is not echoed back.
		"""
		connection_id = await self._store.resolve(message.recipient)
		if not connection_id:
			obs_metrics.inc_relay_message("offline")
			logger.debug("relay recipient offline; message dropped")
			return False
		if origin is not None and connection_id == origin:
			obs_metrics.inc_relay_message("self")
			logger.debug("relay recipient is the sender; message dropped sid=%s", origin)
			return False
		try:
			await self._transport.send(connection_id, message.delivery_payload())
		except Exception:
			obs_metrics.inc_relay_message("failed")
			logger.warning("relay forward failed target=%s", connection_id, exc_info=True)
			return False
		obs_metrics.inc_relay_message("delivered")
		return True
