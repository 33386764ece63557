"""torchcraft-env: client runtime for the TorchCraft RTS automation protocol."""

from torchcraft_env.client import Client
from torchcraft_env.frame import Action, Bullet, Frame, Order, Resources, Unit
from torchcraft_env.state import SessionState

__all__ = ["Client", "SessionState", "Frame", "Unit", "Order", "Action", "Resources", "Bullet"]
