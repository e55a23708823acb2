"""
Pytest configuration for peer connection core tests.

Provides a fake transport (pyee EventEmitter) so the session state machine
can be exercised without network I/O, plus client fixtures wired to it.
"""

from typing import List, Tuple

import pytest

from peercall import CallClient

from fakes import FakeTransport


@pytest.fixture
def transports() -> List[FakeTransport]:
    return []


@pytest.fixture
def transport_factory(transports):
    def factory(initiator, ice_config, stream):
        transport = FakeTransport(initiator, ice_config, stream)
        transports.append(transport)
        return transport
    return factory


@pytest.fixture
def relayed_signals() -> List[Tuple[str, dict]]:
    return []


@pytest.fixture
def client(transport_factory, relayed_signals) -> CallClient:
    return CallClient(
        user_id="local-id",
        emit_signal=lambda participant_id, signal: relayed_signals.append((participant_id, signal)),
        transport_factory=transport_factory,
    )


@pytest.fixture
def connected_peer(client, transports):
    """A client with one connected session for ``peer-b``."""
    client.join_peer("peer-b", initiator=False)
    transport = transports[-1]
    transport.connect()
    transport.sent.clear()
    return transport
