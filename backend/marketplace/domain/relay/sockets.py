"""Socket.IO namespace for the phone-number keyed message relay."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import socketio
from socketio.exceptions import ConnectionRefusedError

from marketplace.domain.presence.store import PresenceStore
from marketplace.infra.auth import AuthenticatedUser, parse_token
from marketplace.obs import metrics as obs_metrics
from marketplace.settings import settings

from .service import MessageRelay
from .session import ConnectionSession

logger = logging.getLogger(__name__)

EVENT_ANNOUNCE = "identity-announce"
EVENT_MESSAGE = "client-message"
EVENT_DELIVERY = "server-delivery"


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class RelayNamespace(socketio.AsyncNamespace):
	"""Routes client messages to the recipient's current connection.

	Each connection gets its own ConnectionSession; the namespace only parses
	events and hands them to that session in arrival order.
	"""

	def __init__(self, store: PresenceStore, namespace: str = "/relay") -> None:
		super().__init__(namespace)
		self.relay = MessageRelay(store, transport=self)
		self.sessions: Dict[str, ConnectionSession] = {}

	async def trigger_event(self, event, *args):
		# Wire events are kebab-case; handlers are on_<snake_case>
		if isinstance(event, str):
			event = event.replace("-", "_")
		return await super().trigger_event(event, *args)

	async def send(self, connection_id: str, payload: dict) -> None:
		obs_metrics.socket_event(self.namespace, EVENT_DELIVERY)
		await self.emit(EVENT_DELIVERY, payload, room=connection_id)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		user: Optional[AuthenticatedUser] = None
		if settings.relay_auth_required:
			try:
				user = self._authorise(environ, auth)
			except ValueError:
				obs_metrics.socket_disconnected(self.namespace)
				raise ConnectionRefusedError("unauthorized") from None

		async def notify(event: str, payload: dict) -> None:
			await self.emit(event, payload, room=sid)

		session = ConnectionSession(
			sid,
			self.relay,
			notify=notify,
			expected_identity=user.phone if user else None,
		)
		self.sessions[sid] = session.start()
		logger.info("relay connect sid=%s", sid)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		session = self.sessions.pop(sid, None)
		if session is None:
			return
		await session.close()
		logger.info("relay disconnect sid=%s reason=%s", sid, reason)

	async def on_identity_announce(self, sid: str, data: dict) -> None:
		obs_metrics.socket_event(self.namespace, EVENT_ANNOUNCE)
		session = self.sessions.get(sid)
		if session is None:
			return
		if not isinstance(data, dict):
			await self.emit("sys.warn", {"code": "invalid_payload"}, room=sid)
			return
		session.announce(data.get("phoneNumber"))

	async def on_client_message(self, sid: str, data: dict) -> None:
		obs_metrics.socket_event(self.namespace, EVENT_MESSAGE)
		session = self.sessions.get(sid)
		if session is None:
			return
		if not isinstance(data, dict):
			await self.emit("sys.warn", {"code": "invalid_payload"}, room=sid)
			return
		session.deliver(data)

	def _authorise(self, environ: dict, auth: Optional[dict]) -> AuthenticatedUser:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		token = auth_payload.get("token") if isinstance(auth_payload, dict) else None
		if not token:
			auth_header = _header(scope, "authorization")
			if auth_header and auth_header.lower().startswith("bearer "):
				token = auth_header.split(" ", 1)[1]
		if not token:
			raise ValueError("missing_token")
		return parse_token(str(token))
