"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api import ops, ratings
from marketplace.api.errors import install_error_handlers
from marketplace.domain.presence import DisabledPresenceStore, RedisPresenceStore
from marketplace.domain.ratings import HttpRatingLedger, InMemoryRatingLedger, RatingAggregator
from marketplace.domain.ratings.service import weights_from_settings
from marketplace.domain.relay.sockets import RelayNamespace
from marketplace.infra import redis
from marketplace.infra.redis import redis_client
from marketplace.obs import init as obs_init
from marketplace.settings import settings

logger = logging.getLogger(__name__)


def build_rating_aggregator() -> RatingAggregator:
	if settings.rating_ledger_url:
		ledger = HttpRatingLedger(settings.rating_ledger_url, timeout=settings.rating_ledger_timeout_seconds)
	else:
		logger.warning("RATING_LEDGER_URL not set; using in-memory rating ledger")
		verified_weight, unverified_weight = weights_from_settings().ledger_weights()
		ledger = InMemoryRatingLedger(verified_weight=verified_weight, unverified_weight=unverified_weight)
	return RatingAggregator(ledger, page_size=settings.rating_page_size)


def build_presence_store() -> RedisPresenceStore:
	return RedisPresenceStore(redis_client, ttl_seconds=settings.presence_ttl_seconds)


relay_namespace = RelayNamespace(build_presence_store())


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.is_prod() and settings.secret_key == "change-me":
		logger.warning("SECRET_KEY is the default value; access tokens are forgeable")
	result = await redis.connect()
	if result.connected:
		relay_namespace.relay.store = build_presence_store()
	else:
		relay_namespace.relay.store = DisabledPresenceStore()
	app.state.redis_bootstrap = result
	try:
		yield
	finally:
		sessions = list(relay_namespace.sessions.values())
		relay_namespace.sessions.clear()
		if sessions:
			await asyncio.gather(*(session.close() for session in sessions), return_exceptions=True)
		ledger_close = getattr(app.state.ratings.ledger, "aclose", None)
		if callable(ledger_close):
			await ledger_close()
		await redis.close()
		logger.info("shutdown complete")


app = FastAPI(title="Marketplace Relay", lifespan=lifespan)
app.state.ratings = build_rating_aggregator()
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
sio.register_namespace(relay_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

app.include_router(ratings.router, tags=["ratings"])
app.include_router(ops.router, tags=["ops"])


if __name__ == "__main__":  # pragma: no cover
	import uvicorn

	uvicorn.run("marketplace.main:socket_app", host="0.0.0.0", port=settings.port)
