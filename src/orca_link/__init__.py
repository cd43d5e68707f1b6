"""Orca Link - Transport capability and its implementations."""
from .mock import MockTransport
from .serial_link import SerialTransport
from .transport import DeviceIdentity, Transport

__all__ = ["DeviceIdentity", "Transport", "MockTransport", "SerialTransport"]
