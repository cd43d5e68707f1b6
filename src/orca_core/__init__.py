"""Orca Core - Settings blob layout, checksums and error taxonomy."""
from .errors import (
    OrcaError,
    TransportError,
    Disconnected,
    Timeout,
    OutOfRange,
    ProtocolMismatch,
    BlobFormatError,
    FormatMismatch,
    Corrupt,
)
from .protocol import DEFAULT_LAYOUT, SettingsLayout, check_span
from .blob import SettingsHeader, build_blob, read_header

__all__ = [
    "OrcaError",
    "TransportError",
    "Disconnected",
    "Timeout",
    "OutOfRange",
    "ProtocolMismatch",
    "BlobFormatError",
    "FormatMismatch",
    "Corrupt",
    "DEFAULT_LAYOUT",
    "SettingsLayout",
    "check_span",
    "SettingsHeader",
    "build_blob",
    "read_header",
]
