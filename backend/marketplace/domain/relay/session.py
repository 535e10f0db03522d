"""Per-connection sequential event processing for the relay."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple

from marketplace.obs import logging as obs_logging

from .models import RelayMessage, normalise_identity
from .service import MessageRelay

logger = logging.getLogger(__name__)

Notifier = Callable[[str, dict], Awaitable[None]]

_ANNOUNCE = "announce"
_DELIVER = "deliver"
_RELEASE = "release"


async def _no_notify(event: str, payload: dict) -> None:
	return None


class ConnectionSession:
	"""Actor owning one socket connection.

	Events are queued and handled one at a time by a single task, so announce,
	deliver and release for a connection are applied in arrival order without
	any global lock. ``release`` is terminal: the task exits after handling it and
	later events are ignored.
	"""

	def __init__(
		self,
		connection_id: str,
		relay: MessageRelay,
		*,
		notify: Optional[Notifier] = None,
		expected_identity: Optional[str] = None,
	) -> None:
		self.connection_id = connection_id
		self.identity: Optional[str] = None
		self._relay = relay
		self._notify = notify or _no_notify
		self._expected_identity = expected_identity
		self._queue: asyncio.Queue[Tuple[str, Any]] = asyncio.Queue()
		self._task: Optional[asyncio.Task] = None
		self._closing = False

	def start(self) -> "ConnectionSession":
		if self._task is None:
			self._task = asyncio.create_task(self._run(), name=f"relay-session:{self.connection_id}")
		return self

	@property
	def closed(self) -> bool:
		return self._task is not None and self._task.done()

	def announce(self, identity: Any) -> None:
		self._submit(_ANNOUNCE, identity)

	def deliver(self, payload: Mapping[str, Any]) -> None:
		self._submit(_DELIVER, payload)

	def release(self) -> None:
		self._submit(_RELEASE, None)
		self._closing = True

	async def join(self) -> None:
		"""Wait until every queued event has been handled."""
		await self._queue.join()

	async def close(self) -> None:
		if not self._closing:
			self.release()
		if self._task is not None:
			await self._task

	def _submit(self, kind: str, payload: Any) -> None:
		if self._closing:
			logger.debug("relay session closing; %s ignored sid=%s", kind, self.connection_id)
			return
		self._queue.put_nowait((kind, payload))

	async def _run(self) -> None:
		obs_logging.bind_context(sid=self.connection_id)
		while True:
			kind, payload = await self._queue.get()
			try:
				if kind == _ANNOUNCE:
					await self._handle_announce(payload)
				elif kind == _DELIVER:
					await self._handle_deliver(payload)
				elif kind == _RELEASE:
					await self._handle_release()
			except Exception:
				logger.exception("relay session event failed kind=%s sid=%s", kind, self.connection_id)
			finally:
				self._queue.task_done()
			# release is terminal even when the store call failed
			if kind == _RELEASE:
				return

	async def _handle_announce(self, raw_identity: Any) -> None:
		try:
			identity = normalise_identity(raw_identity)
		except ValueError:
			await self._notify("sys.warn", {"code": "invalid_payload"})
			return
		if self._expected_identity is not None and identity != self._expected_identity:
			await self._notify("sys.warn", {"code": "identity_mismatch"})
			return
		if self.identity is not None and self.identity != identity:
			# Re-announcing under a new identity drops the old binding first
			await self._relay.release(self.identity, self.connection_id)
		await self._relay.announce(identity, self.connection_id)
		self.identity = identity
		await self._notify("relay.ack", {"ok": True})

	async def _handle_deliver(self, payload: Any) -> None:
		try:
			message = RelayMessage.from_payload(payload, default_sender=self.identity)
		except ValueError:
			await self._notify("sys.warn", {"code": "invalid_payload"})
			return
		await self._relay.deliver(message, origin=self.connection_id)

	async def _handle_release(self) -> None:
		if self.identity is None:
			return
		await self._relay.release(self.identity, self.connection_id)
