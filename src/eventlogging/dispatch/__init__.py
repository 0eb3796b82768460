from .dispatcher import EventDispatcher
from .transport import HttpxBeaconTransport, NullTransport, Transport, create_transport

__all__ = ["EventDispatcher", "HttpxBeaconTransport", "NullTransport", "Transport", "create_transport"]
