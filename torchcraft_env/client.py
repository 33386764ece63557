"""ZeroMQ request/reply client for a TorchCraft server.

The server speaks strict request/reply: every message the client sends is
answered by exactly one reply, and a new request may only go out once the
previous reply has been read.

Protocol:
  - connect(): open a REQ socket, send the handshake, return the reply
  - send(): send one command string
  - receive(): wait (bounded) for the reply, decode it into the session state
"""

import logging
from typing import Optional

import zmq

from torchcraft_env.errors import (
    MalformedEncoding,
    NotConnected,
    ReceiveTimeout,
    ReceiveWithoutSend,
    SendWithoutReceive,
)
from torchcraft_env.state import SessionState

logger = logging.getLogger(__name__)

DEFAULT_URL = "tcp://localhost:11111"
PROTOCOL_VERSION = 16
RECEIVE_TIMEOUT_MS = 30_000


def handshake_message(protocol_version: int = PROTOCOL_VERSION, micro_mode: bool = False) -> str:
    """Build the handshake payload, e.g. ``protocol=16, micro_mode=False``."""
    return f"protocol={protocol_version}, micro_mode={micro_mode}"


class Client:
    """Synchronous client for one game session.

    Usage:
        with Client("tcp://localhost:11111") as client:
            client.connect()
            while not client.state.game_ended:
                client.send(commands)
                client.receive()
                frame = client.state.frame
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        protocol_version: int = PROTOCOL_VERSION,
        micro_mode: bool = False,
        receive_timeout_ms: int = RECEIVE_TIMEOUT_MS,
        state: Optional[SessionState] = None,
        context: Optional[zmq.Context] = None,
    ):
        self.url = url
        self.protocol_version = protocol_version
        self.micro_mode = micro_mode
        self.receive_timeout_ms = receive_timeout_ms
        self.state = state or SessionState(micro_mode=micro_mode)
        self._context = context
        self._socket: Optional[zmq.Socket] = None
        self._awaiting_reply = False

    @classmethod
    def from_config(cls, config) -> "Client":
        """Build a client from a TorchCraftConfig."""
        state = SessionState(
            only_consider_types=config.session.only_consider_types,
            micro_mode=config.client.micro_mode,
        )
        return cls(
            url=config.client.server_url,
            protocol_version=config.client.protocol_version,
            micro_mode=config.client.micro_mode,
            receive_timeout_ms=config.client.receive_timeout_ms,
            state=state,
        )

    def connect(self) -> str:
        """Open the channel and perform the handshake.

        Returns the server's handshake reply verbatim. Transport errors are
        not retried. If the reply carries a malformed session field the
        socket is closed and the DecodeError propagates; the client stays
        disconnected.
        """
        if self._socket is not None:
            logger.warning("Already connected; closing the previous socket")
            self.close()

        context = self._context or zmq.Context.instance()
        socket = context.socket(zmq.REQ)
        try:
            socket.connect(self.url)
            socket.send_string(handshake_message(self.protocol_version, self.micro_mode))
            reply = self._read_reply(socket)
            self.state.setup(reply)
        except Exception:
            socket.close(linger=0)
            self._awaiting_reply = False
            raise

        self._socket = socket
        self._awaiting_reply = False
        logger.info(f"Connected to TorchCraft server at {self.url}")
        return reply

    def send(self, command: str) -> None:
        """Send one command string; a reply must be received before the next send."""
        if self._socket is None:
            raise NotConnected("Not connected. Call connect() first.")
        if self._awaiting_reply:
            raise SendWithoutReceive("previous request has not been answered yet")
        self._socket.send_string(command)
        self._awaiting_reply = True

    def receive(self) -> str:
        """Wait for the reply to the last send() and merge it into the state.

        Returns the raw message. Decode errors from the session state
        propagate unchanged.
        """
        if not self._awaiting_reply:
            raise ReceiveWithoutSend("trying to receive without sending anything")
        if self._socket is None:
            raise NotConnected("Not connected. Call connect() first.")

        message = self._read_reply(self._socket)
        self.state.parse(message)
        self.state.update()
        return message

    def _read_reply(self, socket: zmq.Socket) -> str:
        if not socket.poll(timeout=self.receive_timeout_ms, flags=zmq.POLLIN):
            raise ReceiveTimeout(f"no reply within {self.receive_timeout_ms} ms")

        data = socket.recv()
        # The REQ socket may send again once a reply has been read.
        self._awaiting_reply = False
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEncoding(f"reply is not valid UTF-8: {e}") from e

    def close(self) -> None:
        """Close the socket. The shared zmq context is left alone."""
        if self._socket is not None:
            self._socket.close(linger=0)
            self._socket = None
            logger.info("TorchCraft connection closed")
        self._awaiting_reply = False

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    @property
    def awaiting_reply(self) -> bool:
        return self._awaiting_reply
