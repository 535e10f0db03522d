"""Primary/fallback connection bootstrap for the presence store's Redis backend.

The bootstrap is an explicit state machine::

	ATTEMPTING_PRIMARY -> RETRYING_PRIMARY* -> ATTEMPTING_FALLBACK -> RETRYING_FALLBACK* -> CONNECTED | FAILED

Each endpoint gets one initial attempt plus ``max_retries`` retries. The delay
before retry ``n`` is ``min(n * retry_delay_ms, max_delay_ms)``. Every transition
is reported as a :class:`BootstrapEvent`; nothing is shared between ``connect``
calls, so each call starts counting from zero.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import urlparse

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError

from marketplace.domain.errors import ConfigurationError
from marketplace.obs import metrics as obs_metrics
from marketplace.settings import Settings, settings

logger = logging.getLogger(__name__)

_VALID_SCHEMES = ("redis", "rediss", "unix")


class BootstrapState(str, Enum):
	ATTEMPTING_PRIMARY = "attempting_primary"
	RETRYING_PRIMARY = "retrying_primary"
	ATTEMPTING_FALLBACK = "attempting_fallback"
	RETRYING_FALLBACK = "retrying_fallback"
	CONNECTED = "connected"
	FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Endpoint:
	url: str
	max_retries: int
	username: Optional[str] = None
	password: Optional[str] = None
	connect_timeout: float = 2.0

	@property
	def display(self) -> str:
		"""URL with any inline password masked, safe for logs."""
		parsed = urlparse(self.url)
		if parsed.password:
			netloc = parsed.netloc.replace(f":{parsed.password}@", ":***@")
			return parsed._replace(netloc=netloc).geturl()
		return self.url


@dataclass(frozen=True, slots=True)
class RetryPolicy:
	retry_delay_ms: int = 50
	max_delay_ms: int = 1000

	def delay_seconds(self, retry: int) -> float:
		return min(retry * self.retry_delay_ms, self.max_delay_ms) / 1000.0


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
	primary: Endpoint
	fallback: Endpoint
	policy: RetryPolicy = field(default_factory=RetryPolicy)

	@classmethod
	def from_settings(cls, source: Settings = settings) -> "BootstrapConfig":
		primary = Endpoint(
			url=source.redis_url,
			max_retries=source.redis_max_retries,
			username=source.redis_username,
			password=source.redis_password,
		)
		# The fallback is a local default and never carries credentials
		fallback = Endpoint(url=source.redis_fallback_url, max_retries=source.redis_fallback_max_retries)
		policy = RetryPolicy(retry_delay_ms=source.redis_retry_delay_ms, max_delay_ms=source.redis_max_delay_ms)
		return cls(primary=primary, fallback=fallback, policy=policy)


@dataclass(frozen=True, slots=True)
class BootstrapEvent:
	state: BootstrapState
	endpoint: str
	attempt: int
	delay_seconds: float = 0.0
	error: Optional[str] = None


@dataclass(slots=True)
class BootstrapResult:
	state: BootstrapState
	client: Optional[redis.Redis]
	endpoint: Optional[str]
	attempts: int
	events: List[BootstrapEvent]

	@property
	def connected(self) -> bool:
		return self.state is BootstrapState.CONNECTED and self.client is not None


ClientFactory = Callable[[Endpoint], redis.Redis]
Sleeper = Callable[[float], Awaitable[None]]
Listener = Callable[[BootstrapEvent], None]


def validate_url(url: str) -> None:
	"""Raise ConfigurationError for URLs the Redis client cannot use."""
	if not url or not url.strip():
		raise ConfigurationError("redis url is empty")
	parsed = urlparse(url.strip())
	if parsed.scheme not in _VALID_SCHEMES:
		raise ConfigurationError(f"unsupported redis url scheme: {parsed.scheme or '<none>'}")
	if parsed.scheme == "unix":
		if not parsed.path:
			raise ConfigurationError("unix redis url requires a socket path")
		return
	if not parsed.hostname:
		raise ConfigurationError("redis url requires a host")
	try:
		_ = parsed.port
	except ValueError as exc:
		raise ConfigurationError(f"invalid redis port: {exc}") from None


def default_client_factory(endpoint: Endpoint) -> redis.Redis:
	kwargs = {
		"decode_responses": True,
		"socket_connect_timeout": endpoint.connect_timeout,
		# retries are owned by the bootstrap, not the client
		"retry": Retry(NoBackoff(), 0),
	}
	if endpoint.username:
		kwargs["username"] = endpoint.username
	if endpoint.password:
		kwargs["password"] = endpoint.password
	return redis.from_url(endpoint.url, **kwargs)


async def _close_quietly(client: redis.Redis) -> None:
	try:
		await client.aclose()
	except (RedisError, OSError):
		logger.debug("redis bootstrap close failed", exc_info=True)


class ConnectionBootstrap:
	"""Connect to the primary endpoint, falling back to the local default."""

	def __init__(
		self,
		client_factory: ClientFactory = default_client_factory,
		*,
		sleep: Sleeper = asyncio.sleep,
		listener: Optional[Listener] = None,
	) -> None:
		self._factory = client_factory
		self._sleep = sleep
		self._listener = listener

	async def connect(self, config: BootstrapConfig) -> BootstrapResult:
		validate_url(config.primary.url)
		validate_url(config.fallback.url)
		events: List[BootstrapEvent] = []

		client, primary_attempts = await self._run(
			config.primary,
			config.policy,
			events,
			attempting=BootstrapState.ATTEMPTING_PRIMARY,
			retrying=BootstrapState.RETRYING_PRIMARY,
		)
		if client is not None:
			return self._finish(events, BootstrapState.CONNECTED, client, config.primary, primary_attempts)

		client, fallback_attempts = await self._run(
			config.fallback,
			config.policy,
			events,
			attempting=BootstrapState.ATTEMPTING_FALLBACK,
			retrying=BootstrapState.RETRYING_FALLBACK,
		)
		attempts = primary_attempts + fallback_attempts
		if client is not None:
			return self._finish(events, BootstrapState.CONNECTED, client, config.fallback, attempts)
		return self._finish(events, BootstrapState.FAILED, None, config.fallback, attempts)

	async def _run(
		self,
		endpoint: Endpoint,
		policy: RetryPolicy,
		events: List[BootstrapEvent],
		*,
		attempting: BootstrapState,
		retrying: BootstrapState,
	) -> Tuple[Optional[redis.Redis], int]:
		self._emit(events, BootstrapEvent(state=attempting, endpoint=endpoint.display, attempt=1))
		last_error: Optional[str] = None
		for retry in range(endpoint.max_retries + 1):
			if retry:
				delay = policy.delay_seconds(retry)
				self._emit(
					events,
					BootstrapEvent(
						state=retrying,
						endpoint=endpoint.display,
						attempt=retry + 1,
						delay_seconds=delay,
						error=last_error,
					),
				)
				await self._sleep(delay)
			client = self._factory(endpoint)
			try:
				await client.ping()
			except (RedisError, OSError, asyncio.TimeoutError) as exc:
				last_error = str(exc) or exc.__class__.__name__
				await _close_quietly(client)
				continue
			return client, retry + 1
		return None, endpoint.max_retries + 1

	def _finish(
		self,
		events: List[BootstrapEvent],
		state: BootstrapState,
		client: Optional[redis.Redis],
		endpoint: Endpoint,
		attempts: int,
	) -> BootstrapResult:
		self._emit(events, BootstrapEvent(state=state, endpoint=endpoint.display, attempt=attempts))
		return BootstrapResult(
			state=state,
			client=client,
			endpoint=endpoint.display if client is not None else None,
			attempts=attempts,
			events=events,
		)

	def _emit(self, events: List[BootstrapEvent], event: BootstrapEvent) -> None:
		events.append(event)
		obs_metrics.inc_bootstrap_transition(event.state.value)
		level = logging.WARNING if event.state in (BootstrapState.FAILED, BootstrapState.ATTEMPTING_FALLBACK) else logging.INFO
		logger.log(
			level,
			"redis bootstrap %s endpoint=%s attempt=%d delay=%.3f error=%s",
			event.state.value,
			event.endpoint,
			event.attempt,
			event.delay_seconds,
			event.error,
		)
		if self._listener is not None:
			self._listener(event)
