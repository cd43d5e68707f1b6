"""Orca settings blob protocol constants.

Single source of truth for the on-device settings blob layout.
Keep this file stable. Firmware and host must remain synchronized.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import OutOfRange

# Format family signature, NUL padded to the magic field width
SETTINGS_MAGIC = b"ORCA CONTROLLER\x00"

SETTINGS_VERSION_MAJOR = 1
SETTINGS_VERSION_MINOR = 5

SCHEMA_ID = 0x4143524F  # "ORCA" little-endian

# Header: [Magic(16) | Major(1) | Minor(1) | HeaderSize(2) | Generation(4) | Profile(1) | Flags(1) | Reserved(6)]
HEADER_SIZE = 32

SETTINGS_BLOB_SIZE = 4096

# Trailer: CRC-32 (IEEE, as zlib.crc32) over every byte before it
TRAILER_FMT = "<I"
TRAILER_LEN = 4

DEFAULT_MAX_CHUNK = 256


@dataclass(frozen=True)
class SettingsLayout:
    """Immutable description of the settings blob schema.

    Passed to the assembler, validators and transports so that a header
    growth or version bump is a single change.
    """

    magic: bytes = SETTINGS_MAGIC
    version_major: int = SETTINGS_VERSION_MAJOR
    version_minor: int = SETTINGS_VERSION_MINOR
    schema_id: int = SCHEMA_ID
    header_size: int = HEADER_SIZE
    blob_size: int = SETTINGS_BLOB_SIZE
    trailer_len: int = TRAILER_LEN

    magic_offset: int = 0
    version_major_offset: int = 16
    version_minor_offset: int = 17
    header_size_offset: int = 18
    generation_offset: int = 20
    active_profile_offset: int = 24
    flags_offset: int = 25

    def __post_init__(self) -> None:
        if len(self.magic) != self.version_major_offset - self.magic_offset:
            raise ValueError("magic width does not match field offsets")
        if self.header_size < self.fields_end:
            raise ValueError(f"header_size {self.header_size} below known fields ({self.fields_end})")
        if self.blob_size < self.header_size + self.trailer_len:
            raise ValueError(f"blob_size {self.blob_size} cannot hold header and trailer")

    @property
    def min_blob_size(self) -> int:
        return self.fields_end + self.trailer_len

    @property
    def fields_end(self) -> int:
        """End of the last header field this consumer understands."""
        return self.flags_offset + 1

    def magic_range(self) -> range:
        return range(self.magic_offset, self.magic_offset + len(self.magic))

    def payload_range(self, header_size: int, blob_size: int | None = None) -> range:
        """Byte range of the opaque payload: [header_size, blob_size - trailer)."""
        size = self.blob_size if blob_size is None else blob_size
        end = size - self.trailer_len
        if header_size < 0 or header_size > end:
            raise OutOfRange(f"header_size {header_size} outside [0, {end}]")
        return range(header_size, end)

    def trailer_range(self, blob_size: int | None = None) -> range:
        size = self.blob_size if blob_size is None else blob_size
        if size < self.trailer_len:
            raise OutOfRange(f"blob_size {size} smaller than trailer")
        return range(size - self.trailer_len, size)

    def checked_range(self, blob_size: int | None = None) -> range:
        """Bytes covered by the trailer checksum."""
        return range(0, self.trailer_range(blob_size).start)


def check_span(offset: int, length: int, blob_size: int) -> None:
    """Strict bounds check for a chunk read against [0, blob_size)."""
    if offset < 0:
        raise OutOfRange(f"negative offset {offset}")
    if length <= 0:
        raise OutOfRange(f"non-positive length {length}")
    if offset + length > blob_size:
        raise OutOfRange(f"span [{offset}, {offset + length}) exceeds blob size {blob_size}")


DEFAULT_LAYOUT = SettingsLayout()
