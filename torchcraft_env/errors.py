"""Exception hierarchy for the TorchCraft client.

Decode errors are raised by the token reader, the envelope codec and the
frame decoder. Transport errors are raised by the client around the
request/reply channel. Errors from the underlying zmq socket are not wrapped.
"""


class TorchCraftError(Exception):
    """Base class for every error raised by torchcraft_env."""


# ── Decoding ──────────────────────────────────────────────────────────


class DecodeError(TorchCraftError, ValueError):
    """A server message could not be decoded."""


class UnexpectedEof(DecodeError):
    """The token stream ended before the grammar was satisfied."""


class NotAnInteger(DecodeError):
    """A token expected to be a 32-bit integer was not one."""


class NotAFloat(DecodeError):
    """A token expected to be a float was not one."""


class NegativeLength(DecodeError):
    """A server-declared repeat count was negative."""

    def __init__(self, field: str, value: int):
        super().__init__(f"{field} < 0 (got {value})")
        self.field = field
        self.value = value


class DuplicatePlayer(DecodeError):
    """A player id appeared twice in the same section of a frame."""

    def __init__(self, section: str, player_id: int):
        super().__init__(f"player {player_id} listed twice in {section}")
        self.section = section
        self.player_id = player_id


class MalformedEnvelope(DecodeError):
    """A table, list or frame value was not wrapped in a bracket pair."""


# ── Transport ─────────────────────────────────────────────────────────


class TransportError(TorchCraftError):
    """The request/reply channel could not deliver a usable reply."""


class MalformedEncoding(TransportError):
    """The reply payload was not valid UTF-8 text."""


class ReceiveTimeout(TransportError, TimeoutError):
    """No reply arrived within the receive timeout."""


class ReceiveWithoutSend(TransportError):
    """receive() was called without a preceding send()."""


class SendWithoutReceive(TransportError):
    """send() was called while the previous request is still unanswered."""


class NotConnected(TransportError):
    """The client has no open channel. Call connect() first."""
