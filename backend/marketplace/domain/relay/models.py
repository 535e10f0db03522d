"""Domain models for the message relay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


def normalise_identity(raw: Any) -> str:
	"""Return a stripped identity string, or raise ValueError when blank."""
	if raw is None or isinstance(raw, (bool, dict, list)):
		raise ValueError("invalid_identity")
	identity = str(raw).strip()
	if not identity:
		raise ValueError("invalid_identity")
	return identity


@dataclass(frozen=True, slots=True)
class RelayMessage:
	"""A chat payload in flight. Never persisted."""

	sender: str
	recipient: str
	body: str

	@classmethod
	def from_payload(cls, payload: Mapping[str, Any], *, default_sender: Optional[str] = None) -> "RelayMessage":
		if not isinstance(payload, Mapping):
			raise ValueError("invalid_payload")
		recipient = normalise_identity(payload.get("to"))
		raw_sender = payload.get("from")
		sender = normalise_identity(raw_sender if raw_sender not in (None, "") else default_sender)
		body = payload.get("message")
		if not isinstance(body, str):
			raise ValueError("invalid_payload")
		return cls(sender=sender, recipient=recipient, body=body)

	def delivery_payload(self) -> dict:
		return {"from": self.sender, "message": self.body}
