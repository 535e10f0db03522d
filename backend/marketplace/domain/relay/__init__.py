"""Relay domain exports."""

from .models import RelayMessage
from .service import MessageRelay, RelayTransport
from .session import ConnectionSession

__all__ = [
	"ConnectionSession",
	"MessageRelay",
	"RelayMessage",
	"RelayTransport",
]
