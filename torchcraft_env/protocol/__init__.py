"""Wire-level codecs for the TorchCraft text protocol."""

from torchcraft_env.protocol.table import EnvelopeKey, parse_list, parse_table, strip_brackets
from torchcraft_env.protocol.tokens import TokenReader

__all__ = ["EnvelopeKey", "TokenReader", "parse_list", "parse_table", "strip_brackets"]
