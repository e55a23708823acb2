"""Loopback tests for the aiortc-backed transport.

Two real peer connections negotiate over host candidates only, with the
signals of one side fed straight into the other.
"""

import asyncio

import pytest
from aiortc import AudioStreamTrack

from peercall import ME, AiortcTransport, CallClient, decode, encode
from peercall.protocol import text_message
from peercall.state import MediaStream
from peercall.webrtc import ICEServerConfig, SessionState

LOOPBACK_ICE = ICEServerConfig(
    TURN_SERVER_URL=None,
    TURN_USERNAME=None,
    TURN_CREDENTIAL=None,
    STUN_SERVER_URL=None,
    DEFAULT_STUN_SERVERS=(),
)

USERS = ["alice-id", "bob-id"]


async def wait_for(predicate, timeout: float = 20.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.05)


def is_connected(client: CallClient, participant_id: str) -> bool:
    handler = client.peer_manager.handlers.get(participant_id)
    return handler is not None and handler.state is SessionState.CONNECTED


def errors(client: CallClient):
    return [n.message for n in client.notifications if n.level == "error"]


@pytest.fixture
async def call():
    """Builds alice/bob clients whose rendezvous channel is a direct hand-off."""
    clients = []

    def make(alice_options=None, bob_options=None):
        alice = CallClient(user_id="alice-id", ice_config=LOOPBACK_ICE, **(alice_options or {}))
        bob = CallClient(user_id="bob-id", ice_config=LOOPBACK_ICE, **(bob_options or {}))
        alice.set_signal_emitter(lambda _, signal: bob.receive_signal("alice-id", signal))
        bob.set_signal_emitter(lambda _, signal: alice.receive_signal("bob-id", signal))
        clients.extend([alice, bob])
        return alice, bob

    yield make

    for client in clients:
        client.hang_up()
    await asyncio.sleep(0.5)


def start(alice: CallClient, bob: CallClient) -> None:
    # alice is the newcomer, so bob makes the offer
    alice.handle_users("alice-id", USERS)
    bob.handle_users("alice-id", USERS)


def test_loopback_config_has_no_ice_servers():
    assert LOOPBACK_ICE.ice_servers() == []
    assert LOOPBACK_ICE.to_rtc_configuration().iceServers == []


async def test_initiator_reserves_audio_and_video_slots():
    transport = AiortcTransport(initiator=True, ice_config=LOOPBACK_ICE)
    try:
        transceivers = transport.pc.getTransceivers()
        assert sorted(t.kind for t in transceivers) == ["audio", "video"]
        assert all(t.direction == "recvonly" for t in transceivers)
    finally:
        transport.destroy()
        await asyncio.sleep(0.2)


async def test_non_initiator_sends_one_track_per_kind_before_offer():
    first, second = AudioStreamTrack(), AudioStreamTrack()
    transport = AiortcTransport(
        initiator=False,
        ice_config=LOOPBACK_ICE,
        stream=MediaStream(tracks=[first, second]),
    )
    try:
        assert [sender.track for sender in transport.pc.getSenders()] == [first]
    finally:
        transport.destroy()
        await asyncio.sleep(0.2)


async def test_transports_connect_and_exchange_data():
    offerer = AiortcTransport(initiator=True, ice_config=LOOPBACK_ICE)
    answerer = AiortcTransport(initiator=False, ice_config=LOOPBACK_ICE)
    offerer.on("signal", answerer.signal)
    answerer.on("signal", offerer.signal)
    received = []
    answerer.on("data", received.append)

    try:
        await wait_for(lambda: offerer.connected and answerer.connected)
        offerer.send(encode(text_message("hi")))
        await wait_for(lambda: received)
        assert decode(received[0]) == text_message("hi")
    finally:
        offerer.destroy()
        answerer.destroy()
        await asyncio.sleep(0.2)


async def test_destroy_emits_close_once():
    transport = AiortcTransport(initiator=True, ice_config=LOOPBACK_ICE)
    closes = []
    errors_seen = []
    transport.on("close", lambda: closes.append(True))
    transport.on("error", errors_seen.append)

    transport.destroy()
    transport.destroy()
    await asyncio.sleep(0.5)

    assert closes == [True]
    assert errors_seen == []


async def test_clients_connect_and_announce_nickname_and_room(call):
    alice, bob = call(alice_options={"nickname": "alice", "room": "team1"})

    start(alice, bob)

    await wait_for(lambda: is_connected(alice, "bob-id") and is_connected(bob, "alice-id"))
    await wait_for(
        lambda: bob.nickname_map.get("alice-id") == "alice"
        and bob.room_assignments.get("alice-id") == "team1"
    )
    assert bob.rooms.resolve_gain(ME, "alice-id") == pytest.approx(0.01)

    assert alice.send_text("hello") == 1
    await wait_for(lambda: any(m.message == "hello" for m in bob.messages))
    entry = next(m for m in bob.messages if m.message == "hello")
    assert entry.user_id == "alice-id"


async def test_non_initiator_pushes_local_audio_after_connect(call):
    alice, bob = call()
    track = AudioStreamTrack()
    alice.set_local_stream(MediaStream(tracks=[track]))

    start(alice, bob)

    await wait_for(lambda: bob.streams.get_streams("alice-id"))
    [stream] = bob.streams.get_streams("alice-id")
    assert [t.kind for t in stream.get_tracks()] == ["audio"]
    assert "bob-id" in alice.peers
    assert errors(alice) == []
    assert errors(bob) == []
    track.stop()


async def test_initiator_pushes_local_audio_after_connect(call):
    alice, bob = call()
    start(alice, bob)
    await wait_for(lambda: is_connected(alice, "bob-id") and is_connected(bob, "alice-id"))

    track = AudioStreamTrack()
    bob.set_local_stream(MediaStream(tracks=[track]))

    await wait_for(lambda: alice.streams.get_streams("bob-id"))
    [stream] = alice.streams.get_streams("bob-id")
    assert [t.kind for t in stream.get_tracks()] == ["audio"]
    assert "alice-id" in bob.peers
    assert errors(alice) == []
    assert errors(bob) == []
    track.stop()


async def test_leave_peer_closes_local_session_once(call):
    alice, bob = call()
    start(alice, bob)
    await wait_for(lambda: is_connected(alice, "bob-id"))
    transport = alice.peers["bob-id"]
    closes = []
    transport.on("close", lambda: closes.append(True))

    assert alice.leave_peer("bob-id") is True
    await asyncio.sleep(0.5)

    assert "bob-id" not in alice.peers
    assert closes == [True]
    assert errors(alice) == []
