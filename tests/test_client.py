"""Tests for the request/reply client using a mocked zmq context."""

import threading
from unittest.mock import MagicMock

import pytest
import zmq

from torchcraft_env.client import Client, handshake_message
from torchcraft_env.config import TorchCraftConfig
from torchcraft_env.errors import (
    DecodeError,
    MalformedEncoding,
    NegativeLength,
    NotConnected,
    ReceiveTimeout,
    ReceiveWithoutSend,
    SendWithoutReceive,
)
from torchcraft_env.frame import Frame
from wire_helpers import envelope, frame_wire, unit_wire


def make_client(replies, **kwargs):
    """Client wired to a mock socket that answers with *replies* in order."""
    context = MagicMock()
    socket = context.socket.return_value
    socket.poll.return_value = zmq.POLLIN
    socket.recv.side_effect = [r.encode("utf-8") if isinstance(r, str) else r for r in replies]
    client = Client("tcp://game:11111", context=context, **kwargs)
    return client, context, socket


class TestHandshake:
    def test_handshake_message(self):
        assert handshake_message() == "protocol=16, micro_mode=False"
        assert handshake_message(17, True) == "protocol=17, micro_mode=True"

    def test_connect_sends_handshake_and_returns_reply(self):
        client, context, socket = make_client(["hello"])
        reply = client.connect()
        assert reply == "hello"
        context.socket.assert_called_once_with(zmq.REQ)
        socket.connect.assert_called_once_with("tcp://game:11111")
        socket.send_string.assert_called_once_with("protocol=16, micro_mode=False")
        assert client.is_connected
        assert client.awaiting_reply is False

    def test_micro_mode_flag(self):
        client, _, socket = make_client(["ok"], micro_mode=True)
        client.connect()
        socket.send_string.assert_called_once_with("protocol=16, micro_mode=True")

    def test_reply_table_fills_session_fields(self):
        client, _, _ = make_client(["{map_name=Arena,player_id=1,neutral_id=11}"])
        client.connect()
        assert client.state.map_name == "Arena"
        assert client.state.player_id == 1

    def test_handshake_timeout_closes_socket(self):
        client, _, socket = make_client([])
        socket.poll.return_value = 0
        with pytest.raises(ReceiveTimeout):
            client.connect()
        socket.close.assert_called_once_with(linger=0)
        assert not client.is_connected

    def test_transport_error_propagates(self):
        client, _, socket = make_client([])
        socket.connect.side_effect = zmq.ZMQError(zmq.EINVAL)
        with pytest.raises(zmq.ZMQError):
            client.connect()
        assert not client.is_connected

    def test_malformed_handshake_field_leaves_client_disconnected(self):
        client, _, socket = make_client(["{player_id=zero,map_name=Arena}"])
        with pytest.raises(DecodeError):
            client.connect()
        socket.close.assert_called_once_with(linger=0)
        assert not client.is_connected
        assert client.awaiting_reply is False
        assert client.state.player_id == -1
        assert client.state.map_name == ""

    def test_reconnect_closes_previous_socket(self):
        client, context, socket = make_client(["a", "b"])
        client.connect()
        client.connect()
        socket.close.assert_called_once_with(linger=0)
        assert context.socket.call_count == 2


class TestAlternation:
    def test_receive_before_send(self):
        client, _, socket = make_client(["hello"])
        client.connect()
        frame = client.state.frame
        with pytest.raises(ReceiveWithoutSend):
            client.receive()
        socket.poll.assert_called_once()  # only the handshake poll
        assert client.state.frame is frame
        assert client.state.frame_count == 0

    def test_receive_before_connect(self):
        client, _, _ = make_client([])
        with pytest.raises(ReceiveWithoutSend):
            client.receive()

    def test_send_before_connect(self):
        client, _, _ = make_client([])
        with pytest.raises(NotConnected):
            client.send("")

    def test_send_twice(self):
        client, _, _ = make_client(["hello"])
        client.connect()
        client.send("")
        with pytest.raises(SendWithoutReceive):
            client.send("")

    def test_send_sets_awaiting_reply(self):
        client, _, socket = make_client(["hello"])
        client.connect()
        client.send("cmd")
        socket.send_string.assert_called_with("cmd")
        assert client.awaiting_reply is True


class TestReceive:
    def test_decodes_into_state(self):
        message = envelope(frame=frame_wire(units={0: [unit_wire(4)]}, reward=2), deaths="{9}")
        client, _, socket = make_client(["hello", message])
        client.connect()
        client.send("")
        assert client.receive() == message
        assert client.awaiting_reply is False
        assert client.state.frame.reward == 2
        assert client.state.deaths == [9]
        assert client.state.alive_units == {4: 0}
        socket.poll.assert_called_with(timeout=30_000, flags=zmq.POLLIN)

    def test_timeout(self):
        client, _, socket = make_client(["hello"], receive_timeout_ms=250)
        client.connect()
        client.send("")
        socket.poll.return_value = 0
        with pytest.raises(ReceiveTimeout) as exc_info:
            client.receive()
        assert isinstance(exc_info.value, TimeoutError)
        assert client.awaiting_reply is True
        socket.poll.assert_called_with(timeout=250, flags=zmq.POLLIN)

    def test_malformed_encoding(self):
        client, _, _ = make_client(["hello", b"\xff\xfe{}"])
        client.connect()
        client.send("")
        with pytest.raises(MalformedEncoding):
            client.receive()
        assert client.state.frame == Frame()

    def test_decode_error_propagates_and_keeps_frame(self):
        good = envelope(frame=frame_wire(reward=1))
        bad = envelope(frame="{0 0 0 -1}")
        client, _, _ = make_client(["hello", good, bad])
        client.connect()
        client.send("")
        client.receive()
        before = client.state.frame
        client.send("")
        with pytest.raises(NegativeLength):
            client.receive()
        assert client.state.frame is before
        assert client.awaiting_reply is False

    def test_receive_after_close(self):
        client, _, socket = make_client(["hello"])
        client.connect()
        client.send("")
        client.close()
        socket.close.assert_called_once_with(linger=0)
        with pytest.raises(ReceiveWithoutSend):
            client.receive()


class TestLifecycle:
    def test_context_manager_closes(self):
        client, _, socket = make_client(["hello"])
        with client:
            client.connect()
        socket.close.assert_called_once_with(linger=0)
        assert not client.is_connected

    def test_from_config(self):
        config = TorchCraftConfig(
            client={"server_url": "tcp://host:1", "micro_mode": True, "receive_timeout_ms": 500},
            session={"only_consider_types": [37, 43]},
        )
        client = Client.from_config(config)
        assert client.url == "tcp://host:1"
        assert client.micro_mode is True
        assert client.receive_timeout_ms == 500
        assert client.state.micro_mode is True
        assert client.state.only_consider_types == frozenset({37, 43})


class TestInprocServer:
    def test_request_reply_exchange(self):
        context = zmq.Context()
        server = context.socket(zmq.REP)
        server.bind("inproc://torchcraft-test")
        received = []

        def serve():
            received.append(server.recv_string())
            server.send_string("{map_name=Inproc,player_id=0}")
            received.append(server.recv_string())
            server.send_string(envelope(frame=frame_wire(units={0: [unit_wire(3)]}, reward=7)))

        thread = threading.Thread(target=serve)
        thread.start()
        client = Client("inproc://torchcraft-test", context=context, receive_timeout_ms=5000)
        try:
            assert client.connect() == "{map_name=Inproc,player_id=0}"
            client.send("noop")
            client.receive()
        finally:
            thread.join(timeout=5)
            client.close()
            server.close(linger=0)
            context.term()

        assert received == ["protocol=16, micro_mode=False", "noop"]
        assert client.state.map_name == "Inproc"
        assert client.state.frame.reward == 7
        assert [u.id for u in client.state.units[0]] == [3]
