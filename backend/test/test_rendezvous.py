"""Tests for the rendezvous channel frame handling."""

import json

from peercall import CallClient, RendezvousChannel


class RecordingSocket:
    def __init__(self):
        self.frames = []

    async def send(self, frame):
        self.frames.append(json.loads(frame))


def frame(event, payload):
    return json.dumps({"type": event, "payload": payload})


def test_channel_becomes_signal_emitter(client):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    assert client.peer_manager.emit_signal == channel.emit_signal


def test_id_frame_sets_local_identifier(client):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    assert channel.handle_message(frame("id", {"participantId": "server-id"})) is True
    assert client.user_id == "server-id"


def test_users_frame_creates_sessions(client, transports):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    users = [{"participantId": "local-id"}, {"participantId": "peer-b"}]

    assert channel.handle_message(frame("users", {"initiator": "peer-b", "users": users}))

    assert list(client.peers) == ["peer-b"]
    assert transports[0].initiator is True


def test_signal_frame_reaches_transport(client, transports):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    client.join_peer("peer-b", initiator=False)
    signal = {"type": "offer", "sdp": "v=0"}

    channel.handle_message(frame("signal", {"participantId": "peer-b", "signal": signal}))

    assert transports[0].signals == [signal]


def test_hang_up_frame_closes_session(client, transports):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    client.join_peer("peer-b", initiator=False)

    channel.handle_message(frame("hangUp", {"participantId": "peer-b"}))

    assert "peer-b" not in client.peers
    assert transports[0].destroy_calls == 1


def test_malformed_frames_are_skipped(client):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)

    assert channel.handle_message("{not json") is False
    assert channel.handle_message("[1, 2]") is False
    assert channel.handle_message(frame("signal", None)) is False
    assert channel.handle_message(frame("signal", {"signal": {}})) is False
    assert channel.handle_message(frame("users", {"users": [{"id": "x"}]})) is False
    assert channel.handle_message(frame("unknown", {})) is False
    assert len(client.sessions) == 0


def test_emit_without_connection_is_dropped(client):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    channel.emit_signal("peer-b", {"type": "offer"})
    assert not channel.is_connected


async def test_relayed_signal_is_sent_as_frame(client, transports):
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    socket = RecordingSocket()
    channel.ws = socket
    client.join_peer("peer-b", initiator=True)

    transports[0].emit("signal", {"type": "offer", "sdp": "v=0"})
    for task in list(channel._tasks):
        await task

    assert socket.frames == [{
        "type": "signal",
        "payload": {"participantId": "peer-b", "signal": {"type": "offer", "sdp": "v=0"}},
    }]


def test_users_frame_before_id_frame_skips_self(transport_factory, transports):
    client = CallClient(transport_factory=transport_factory)
    channel = RendezvousChannel("ws://localhost:3000/ws", client)
    users = [{"participantId": "server-id"}, {"participantId": "peer-b"}]

    channel.handle_message(frame("users", {"initiator": "server-id", "users": users}))
    assert len(client.sessions) == 0

    channel.handle_message(frame("id", {"participantId": "server-id"}))

    assert list(client.peers) == ["peer-b"]
    assert "server-id" not in client.peers
