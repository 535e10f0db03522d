"""Presence domain exports."""

from .store import DisabledPresenceStore, InMemoryPresenceStore, PresenceStore, RedisPresenceStore

__all__ = [
	"DisabledPresenceStore",
	"InMemoryPresenceStore",
	"PresenceStore",
	"RedisPresenceStore",
]
