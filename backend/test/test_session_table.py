"""Tests for the peer session table."""

import pytest

from peercall.webrtc import PeerSession, SessionTable

from fakes import FakeTransport


def make_session(participant_id: str) -> PeerSession:
    return PeerSession(participant_id=participant_id, transport=FakeTransport(False))


def test_add_and_get():
    table = SessionTable()
    session = make_session("peer-b")
    table.add(session)

    assert table.get("peer-b") is session
    assert "peer-b" in table
    assert len(table) == 1
    assert table.is_current(session)


def test_add_rejects_second_live_session():
    table = SessionTable()
    table.add(make_session("peer-b"))
    with pytest.raises(ValueError):
        table.add(make_session("peer-b"))
    assert len(table) == 1


def test_remove_is_idempotent():
    table = SessionTable()
    session = make_session("peer-b")
    table.add(session)

    assert table.remove("peer-b") is session
    assert table.remove("peer-b") is None
    assert "peer-b" not in table


def test_remove_with_stale_session_keeps_current():
    table = SessionTable()
    old = make_session("peer-b")
    table.add(old)
    table.remove("peer-b", old)
    new = make_session("peer-b")
    table.add(new)

    assert table.remove("peer-b", old) is None
    assert table.get("peer-b") is new
    assert not table.is_current(old)


def test_transports_view_is_read_only():
    table = SessionTable()
    session = make_session("peer-b")
    table.add(session)

    view = table.transports()
    assert view["peer-b"] is session.transport
    with pytest.raises(TypeError):
        view["peer-c"] = session.transport


def test_iteration_allows_removal():
    table = SessionTable()
    for participant_id in ("peer-b", "peer-c"):
        table.add(make_session(participant_id))

    for participant_id in table:
        table.remove(participant_id)
    assert len(table) == 0
