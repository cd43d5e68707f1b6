"""Typed failures for settings blob access.

Transport errors surface unchanged from a link to the caller.
Format errors are raised only after a complete transfer.
"""
from __future__ import annotations


class OrcaError(Exception):
    """Base class for every settings-access failure."""

    code = "E_ORCA"


class TransportError(OrcaError):
    code = "E_TRANSPORT"


class Disconnected(TransportError):
    """The link was lost or closed while an operation was outstanding."""

    code = "E_DISCONNECTED"


class Timeout(TransportError):
    """No response arrived within the link's deadline."""

    code = "E_TIMEOUT"


class OutOfRange(TransportError):
    """Offset or length outside the blob bounds. Always a caller bug."""

    code = "E_OUT_OF_RANGE"


class ProtocolMismatch(TransportError):
    """The device answered, but not in a form this host understands."""

    code = "E_PROTOCOL_MISMATCH"


class BlobFormatError(OrcaError):
    code = "E_FORMAT"


class FormatMismatch(BlobFormatError):
    """Magic or major version unrecognized: firmware and host are incompatible."""

    code = "E_FORMAT_MISMATCH"


class Corrupt(BlobFormatError):
    """Trailer checksum does not match the assembled bytes."""

    code = "E_CORRUPT"
