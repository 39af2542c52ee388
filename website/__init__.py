from .relay import RelayHub, SerialBridge
from .server import create_app

__all__ = ["RelayHub", "SerialBridge", "create_app"]
