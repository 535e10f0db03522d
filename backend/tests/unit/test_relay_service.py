import pytest

from marketplace.domain.presence import InMemoryPresenceStore
from marketplace.domain.relay import MessageRelay, RelayMessage


class RecordingTransport:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.fail = fail

    async def send(self, connection_id: str, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append((connection_id, payload))


@pytest.mark.asyncio
async def test_deliver_forwards_sender_and_body_only():
    store = InMemoryPresenceStore()
    transport = RecordingTransport()
    relay = MessageRelay(store, transport)
    await relay.announce("+15550002", "conn-b")

    delivered = await relay.deliver(RelayMessage(sender="+15550001", recipient="+15550002", body="hi"))

    assert delivered is True
    assert transport.sent == [("conn-b", {"from": "+15550001", "message": "hi"})]


@pytest.mark.asyncio
async def test_deliver_to_offline_recipient_is_dropped():
    store = InMemoryPresenceStore()
    transport = RecordingTransport()
    relay = MessageRelay(store, transport)

    delivered = await relay.deliver(RelayMessage(sender="+15550001", recipient="+15550002", body="hi"))

    assert delivered is False
    assert transport.sent == []
    assert len(store) == 0


@pytest.mark.asyncio
async def test_deliver_after_release_is_dropped():
    store = InMemoryPresenceStore()
    transport = RecordingTransport()
    relay = MessageRelay(store, transport)
    await relay.announce("+15550002", "conn-b")
    await relay.release("+15550002", "conn-b")

    assert await relay.deliver(RelayMessage(sender="+15550001", recipient="+15550002", body="hi")) is False
    assert transport.sent == []


@pytest.mark.asyncio
async def test_transport_failure_is_not_raised():
    store = InMemoryPresenceStore()
    relay = MessageRelay(store, RecordingTransport(fail=True))
    await relay.announce("+15550002", "conn-b")

    assert await relay.deliver(RelayMessage(sender="+15550001", recipient="+15550002", body="hi")) is False


@pytest.mark.asyncio
async def test_message_to_own_connection_is_not_echoed():
    store = InMemoryPresenceStore()
    transport = RecordingTransport()
    relay = MessageRelay(store, transport)
    await relay.announce("+15550001", "conn-a")

    message = RelayMessage(sender="+15550001", recipient="+15550001", body="note to self")

    assert await relay.deliver(message, origin="conn-a") is False
    assert transport.sent == []
    assert await relay.deliver(message, origin="conn-z") is True
    assert transport.sent == [("conn-a", {"from": "+15550001", "message": "note to self"})]


@pytest.mark.asyncio
async def test_store_can_be_swapped_at_runtime():
    first = InMemoryPresenceStore()
    second = InMemoryPresenceStore()
    relay = MessageRelay(first, RecordingTransport())

    relay.store = second
    await relay.announce("+15550002", "conn-b")

    assert await first.resolve("+15550002") is None
    assert await second.resolve("+15550002") == "conn-b"


def test_message_from_payload_defaults_sender_to_announced_identity():
    message = RelayMessage.from_payload({"to": "+15550002", "message": "hey"}, default_sender="+15550001")

    assert message.sender == "+15550001"
    assert message.delivery_payload() == {"from": "+15550001", "message": "hey"}


@pytest.mark.parametrize(
    "payload",
    [
        {"from": "+15550001", "message": "hey"},
        {"from": "+15550001", "to": "  ", "message": "hey"},
        {"from": "+15550001", "to": "+15550002"},
        {"from": "+15550001", "to": "+15550002", "message": 12},
        {"to": "+15550002", "message": "hey"},
    ],
)
def test_message_from_payload_rejects_malformed(payload):
    with pytest.raises(ValueError):
        RelayMessage.from_payload(payload)
