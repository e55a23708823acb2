"""Tests for the peer lifecycle controller and per-session state machine."""

import pytest

from peercall import ME, CallClient, TransportError, encode
from peercall.protocol import (
    file_message,
    nickname_message,
    room_message,
    text_message,
)
from peercall.state import SYSTEM_USER, MediaStream
from peercall.webrtc import SessionState

from fakes import FakeTrack


def notifications(client: CallClient):
    return [(n.level, n.message) for n in client.notifier.history]


# ========== Establishing sessions ==========

def test_join_peer_records_session(client, transports):
    session = client.join_peer("peer-b", initiator=False)

    assert client.peers["peer-b"] is transports[0]
    assert session.transport is transports[0]
    assert ("warning", "Connecting to peer...") in notifications(client)


@pytest.mark.parametrize(
    "initiator, expected",
    [("peer-b", True), ("peer-c", False), (True, True), (False, False)],
)
def test_initiator_role(client, transports, initiator, expected):
    client.join_peer("peer-b", initiator=initiator)
    assert transports[0].initiator is expected


def test_empty_stream_is_not_attached(client, transports):
    client.join_peer("peer-b", False, MediaStream())
    assert transports[0].stream is None

    stream = MediaStream(tracks=[FakeTrack()])
    client.join_peer("peer-c", False, stream)
    assert transports[1].stream is stream


def test_replacing_session_destroys_old_transport_first(client, transports):
    client.join_peer("peer-b", initiator=False)
    old = transports[0]
    client.rooms.set_room("peer-b", "team2")

    client.join_peer("peer-b", initiator=False)
    new = transports[1]

    assert old.destroy_calls == 1
    assert client.peers["peer-b"] is new
    assert len(client.sessions) == 1
    assert "peer-b" not in client.rooms.assignments
    assert ("info", "Cleaning up old connection...") in notifications(client)
    # the synchronous close from destroy() must not produce a user notification
    assert ("error", "Peer connection closed") not in notifications(client)


def test_late_events_from_replaced_session_are_ignored(client, transports, relayed_signals):
    client.join_peer("peer-b", initiator=False)
    old = transports[0]
    client.join_peer("peer-b", initiator=False)
    new = transports[1]
    chat_before = list(client.messages)

    old.emit("signal", {"type": "offer", "sdp": "stale"})
    old.connect()
    old.receive(encode(text_message("stale")))
    old.emit("error", TransportError("stale"))
    old.emit("close")

    assert relayed_signals == []
    assert old.sent == []
    assert list(client.messages) == chat_before
    assert client.peers["peer-b"] is new
    assert new.destroy_calls == 0


def test_at_most_one_session_per_participant(client, transports):
    for _ in range(5):
        client.join_peer("peer-b", initiator=False)
    client.join_peer("peer-c", initiator=False)

    assert sorted(client.peers) == ["peer-b", "peer-c"]
    assert [t.destroy_calls for t in transports] == [1, 1, 1, 1, 0, 0]


# ========== Signals ==========

def test_signals_are_relayed_before_and_after_connect(client, transports, relayed_signals):
    client.join_peer("peer-b", initiator=True)
    transport = transports[0]

    offer = {"type": "offer", "sdp": "v=0"}
    transport.emit("signal", offer)
    transport.emit("signal", offer)
    transport.connect()
    transport.emit("signal", {"type": "renegotiate", "renegotiate": True})

    assert relayed_signals == [
        ("peer-b", offer),
        ("peer-b", offer),
        ("peer-b", {"type": "renegotiate", "renegotiate": True}),
    ]


def test_signal_without_rendezvous_is_dropped(transport_factory, transports):
    client = CallClient(user_id="local-id", transport_factory=transport_factory)
    client.join_peer("peer-b", initiator=True)
    transports[0].emit("signal", {"type": "offer", "sdp": "v=0"})
    assert len(client.sessions) == 1


def test_receive_signal_forwards_to_matching_session(client, transports):
    assert client.receive_signal("peer-b", {"type": "offer"}) is False

    client.join_peer("peer-b", initiator=False)
    assert client.receive_signal("peer-b", {"type": "offer", "sdp": "v=0"}) is True
    assert transports[0].signals == [{"type": "offer", "sdp": "v=0"}]


# ========== Connect ==========

def test_connect_sends_pending_nickname_exactly_once(client, transports):
    client.nicknames.set_nickname(ME, "alice")
    client.join_peer("peer-b", initiator=False)
    transport = transports[0]

    transport.connect()
    transport.connect()

    assert transport.sent_messages() == [nickname_message("alice")]
    assert client.peer_manager.handlers["peer-b"].state is SessionState.CONNECTED
    assert ("warning", "Peer connection established") in notifications(client)


def test_connect_announces_local_room_with_sentinel(transport_factory, transports):
    alice = CallClient(user_id="alice-id", room="team1", transport_factory=transport_factory)
    bob = CallClient(user_id="bob-id", transport_factory=transport_factory)

    alice.join_peer("bob-id", initiator="alice-id")
    bob.join_peer("alice-id", initiator="alice-id")
    to_bob, to_alice = transports

    to_bob.connect()
    assert to_bob.sent_messages() == [room_message("team1", ME)]

    for data in to_bob.sent:
        to_alice.receive(data)
    assert bob.room_assignments["alice-id"] == "team1"
    assert bob.rooms.resolve_gain(ME, "alice-id") == pytest.approx(0.01)


def test_connect_without_nickname_or_room_sends_nothing(client, transports):
    client.join_peer("peer-b", initiator=False)
    transports[0].connect()
    assert transports[0].sent == []


def test_connect_pushes_local_tracks(client, transports):
    track = FakeTrack()
    stream = MediaStream(tracks=[track])
    client.set_local_stream(stream)
    client.join_peer("peer-b", initiator=False)

    transports[0].connect()
    assert transports[0].tracks == [(track, stream)]


def test_local_stream_after_connect_is_added_to_connected_peers(client, transports, connected_peer):
    client.join_peer("peer-c", initiator=False)
    pending = transports[-1]
    track = FakeTrack("video")
    stream = MediaStream(tracks=[track])

    client.set_local_stream(stream)

    assert connected_peer.tracks == [(track, stream)]
    assert pending.tracks == []


# ========== Tracks ==========

def test_remote_track_registers_stream_and_mute_state(client, connected_peer):
    track = FakeTrack()
    stream = MediaStream(tracks=[track])

    connected_peer.emit("track", track, stream)
    connected_peer.emit("track", track, stream)
    assert client.streams.get_streams("peer-b") == [stream]

    track.emit("mute")
    assert stream.get_tracks() == []
    track.emit("unmute")
    assert stream.get_tracks() == [track]


def test_ended_track_is_removed_from_stream(client, connected_peer):
    track = FakeTrack()
    stream = MediaStream(tracks=[track])
    connected_peer.emit("track", track, stream)

    track.emit("ended")

    assert stream.get_tracks() == []
    assert client.streams.get_streams("peer-b") == [stream]


def test_mute_after_close_does_not_touch_streams(client, connected_peer):
    track = FakeTrack()
    stream = MediaStream(tracks=[track])
    connected_peer.emit("track", track, stream)

    connected_peer.emit("close")
    track.emit("mute")

    assert client.streams.get_streams("peer-b") == []
    assert stream.get_tracks() == [track]


# ========== Data ==========

def test_malformed_data_keeps_session(client, connected_peer):
    client.rooms.set_room("peer-b", "team2")
    chat_before = list(client.messages)

    connected_peer.receive(b"{not json")

    assert "peer-b" in client.sessions
    assert client.room_assignments["peer-b"] == "team2"
    assert list(client.messages) == chat_before


def test_inbound_text_and_unknown_types_reach_chat(client, connected_peer):
    connected_peer.receive(encode(text_message("hello")))
    connected_peer.receive(b'{"type": "poke", "payload": "ping"}')

    entries = [(m.user_id, m.message) for m in client.messages]
    assert entries == [("peer-b", "hello"), ("peer-b", "ping")]


def test_inbound_nickname_updates_table(client, connected_peer):
    connected_peer.receive(encode(nickname_message("bob")))

    assert client.nickname_map["peer-b"] == "bob"
    entry = client.messages[-1]
    assert entry.user_id == SYSTEM_USER
    assert entry.system
    assert entry.message == "User peer-b is now known as bob"


def test_inbound_file_carries_data_url(client, connected_peer):
    connected_peer.receive(encode(file_message("a.png", 2, "image/png", "data:image/png;base64,AA==")))

    entry = client.messages[-1]
    assert entry.user_id == "peer-b"
    assert entry.message == "a.png"
    assert entry.image == "data:image/png;base64,AA=="


def test_inbound_room_messages_are_translated(client, connected_peer):
    connected_peer.receive(encode(room_message("team2", ME)))
    assert client.room_assignments["peer-b"] == "team2"
    assert client.messages[-1].message == "User peer-b moved to room team2"

    connected_peer.receive(encode(room_message("team3", "local-id")))
    assert client.room_assignments[ME] == "team3"

    client.join_peer("peer-c", initiator=False)
    connected_peer.receive(encode(room_message("", "peer-c")))
    assert client.room_assignments["peer-c"] == ""
    assert client.messages[-1].message == "User peer-b moved to room main"


def test_room_message_for_participant_without_session_is_ignored(client, connected_peer):
    before = len(client.messages)

    for n in range(3):
        connected_peer.receive(encode(room_message("team1", f"stranger-{n}")))

    assert set(client.room_assignments) == {ME}
    assert len(client.messages) == before
    assert "peer-b" in client.sessions


# ========== Error / close ==========

def test_error_destroys_and_cleans_up(client, connected_peer):
    client.rooms.set_room("peer-b", "team2")
    stream = MediaStream(tracks=[FakeTrack()])
    connected_peer.emit("track", stream.tracks[0], stream)

    connected_peer.emit("error", TransportError("ice failed"))

    assert connected_peer.destroy_calls == 1
    assert "peer-b" not in client.sessions
    assert "peer-b" not in client.rooms.assignments
    assert client.streams.get_streams("peer-b") == []
    assert ("error", "A peer connection error occurred") in notifications(client)
    assert ("error", "Peer connection closed") not in notifications(client)


def test_close_cleans_up_without_destroy(client, connected_peer):
    client.rooms.set_room("peer-b", "team2")

    connected_peer.emit("close")

    assert connected_peer.destroy_calls == 0
    assert "peer-b" not in client.sessions
    assert "peer-b" not in client.rooms.assignments
    assert ("error", "Peer connection closed") in notifications(client)


def test_error_after_close_is_ignored(client, connected_peer):
    connected_peer.emit("close")
    before = notifications(client)

    connected_peer.emit("error", TransportError("late"))

    assert notifications(client) == before
    assert connected_peer.destroy_calls == 0
    assert "peer-b" not in client.sessions


def test_double_teardown_matches_single(client, transports):
    client.join_peer("peer-b", initiator=False)
    client.join_peer("peer-c", initiator=False)
    client.rooms.set_room("peer-c", "team1")
    transports[0].emit("error", TransportError("first"))
    once = (sorted(client.peers), dict(client.room_assignments))

    transports[0].emit("close")
    transports[0].emit("error", TransportError("second"))

    assert (sorted(client.peers), dict(client.room_assignments)) == once
    assert transports[0].destroy_calls == 1


def test_failure_is_contained_to_one_session(client, transports):
    client.join_peer("peer-b", initiator=False)
    client.join_peer("peer-c", initiator=False)
    client.rooms.set_room("peer-c", "team1")

    transports[0].emit("error", TransportError("boom"))

    assert list(client.peers) == ["peer-c"]
    assert client.room_assignments["peer-c"] == "team1"
    assert transports[1].destroy_calls == 0


def test_leave_peer_and_hang_up(client, transports):
    client.join_peer("peer-b", initiator=False)
    client.join_peer("peer-c", initiator=False)

    assert client.leave_peer("peer-b") is True
    assert client.leave_peer("peer-b") is False
    assert transports[0].destroy_calls == 1

    client.hang_up()
    assert len(client.sessions) == 0
    assert client.peer_manager.handlers == {}
    assert transports[1].destroy_calls == 1


def test_send_failure_is_contained(client, transports):
    client.join_peer("peer-b", initiator=False)
    client.join_peer("peer-c", initiator=False)
    transports[0].fail_send = True

    sent = client.send_text("hi")

    assert sent == 1
    assert transports[1].sent == [encode(text_message("hi"))]
    assert "peer-b" in client.sessions


def test_get_transport(client, transports):
    assert client.peer_manager.get_transport("peer-b") is None
    client.join_peer("peer-b", initiator=False)
    assert client.peer_manager.get_transport("peer-b") is transports[0]
