"""JSON log records with request/connection context and field redaction."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from marketplace.settings import settings

# request_id, route, sid, ip for the current request or socket session
_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("obs_context", default={})

_LOGGER_NAME = "marketplace"

# Phone numbers and chat bodies must never reach the log pipeline
_REDACTED_FIELDS = ("token", "secret", "authorization", "password", "phone", "identity", "message", "body", "content")
_REDACTED = "[redacted]"
_MAX_STRING_LENGTH = 256

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Layer non-empty fields over the current context; pass the token to reset_context."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def redact(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(marker in lowered for marker in _REDACTED_FIELDS):
		return _REDACTED
	if isinstance(value, str) and len(value) > _MAX_STRING_LENGTH:
		return value[:_MAX_STRING_LENGTH] + "…"
	if isinstance(value, Mapping):
		return {str(k): redact(str(k), v) for k, v in value.items()}
	return value


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		entry: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		entry.update(_CONTEXT.get())
		if record.exc_info:
			entry["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key not in _STANDARD_ATTRS:
				entry[key] = redact(key, value)
		return json.dumps(entry, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drop a share of INFO records; everything else passes."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(rate, 0.0)


def configure_logging() -> logging.Logger:
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers[:] = [handler]
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
