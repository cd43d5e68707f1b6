"""Settings blob encoding: header field access, building and sealing."""
from __future__ import annotations

import struct
from dataclasses import dataclass

from .crc import crc32
from .protocol import DEFAULT_LAYOUT, TRAILER_FMT, SettingsLayout


@dataclass(frozen=True)
class SettingsHeader:
    magic: bytes
    version_major: int
    version_minor: int
    header_size: int
    generation: int
    active_profile: int
    flags: int
    stored_crc32: int
    computed_crc32: int

    @property
    def crc_valid(self) -> bool:
        return self.stored_crc32 == self.computed_crc32

    def to_dict(self) -> dict:
        return {
            "magic": self.magic.rstrip(b"\x00").decode("ascii", errors="replace"),
            "version_major": self.version_major,
            "version_minor": self.version_minor,
            "header_size": self.header_size,
            "generation": self.generation,
            "active_profile": self.active_profile,
            "flags": self.flags,
            "stored_crc32": f"{self.stored_crc32:08x}",
            "computed_crc32": f"{self.computed_crc32:08x}",
        }


def read_magic(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> bytes:
    r = layout.magic_range()
    return bytes(blob[r.start:r.stop])


def read_version(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> tuple[int, int]:
    return blob[layout.version_major_offset], blob[layout.version_minor_offset]


def stored_checksum(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> int:
    (value,) = struct.unpack_from(TRAILER_FMT, blob, layout.trailer_range(len(blob)).start)
    return value


def computed_checksum(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> int:
    r = layout.checked_range(len(blob))
    return crc32(bytes(blob[r.start:r.stop]))


def read_header(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> SettingsHeader:
    """Decode every known header field plus both checksums.

    No validation happens here; callers decide what a bad value means.
    """
    major, minor = read_version(blob, layout)
    (header_size,) = struct.unpack_from("<H", blob, layout.header_size_offset)
    (generation,) = struct.unpack_from("<I", blob, layout.generation_offset)
    return SettingsHeader(
        magic=read_magic(blob, layout),
        version_major=major,
        version_minor=minor,
        header_size=header_size,
        generation=generation,
        active_profile=blob[layout.active_profile_offset],
        flags=blob[layout.flags_offset],
        stored_crc32=stored_checksum(blob, layout),
        computed_crc32=computed_checksum(blob, layout),
    )


def seal_blob(blob: bytearray, layout: SettingsLayout = DEFAULT_LAYOUT) -> bytearray:
    """Recompute the trailer in place and return the same buffer."""
    struct.pack_into(TRAILER_FMT, blob, layout.trailer_range(len(blob)).start, computed_checksum(blob, layout))
    return blob


def build_blob(
    layout: SettingsLayout = DEFAULT_LAYOUT,
    *,
    payload: bytes = b"",
    generation: int = 1,
    active_profile: int = 0,
    flags: int = 0,
) -> bytes:
    """Build a byte-exact, sealed settings blob for ``layout``.

    ``payload`` is copied to the start of the payload range and the rest is
    zero filled.
    """
    blob = bytearray(layout.blob_size)
    body = layout.payload_range(layout.header_size)
    if len(payload) > len(body):
        raise ValueError(f"payload of {len(payload)} bytes exceeds payload range of {len(body)}")

    r = layout.magic_range()
    blob[r.start:r.stop] = layout.magic
    blob[layout.version_major_offset] = layout.version_major
    blob[layout.version_minor_offset] = layout.version_minor
    struct.pack_into("<H", blob, layout.header_size_offset, layout.header_size)
    struct.pack_into("<I", blob, layout.generation_offset, generation & 0xFFFFFFFF)
    blob[layout.active_profile_offset] = active_profile & 0xFF
    blob[layout.flags_offset] = flags & 0xFF
    blob[body.start:body.start + len(payload)] = payload
    return bytes(seal_blob(blob, layout))


def with_generation(blob: bytes, generation: int, layout: SettingsLayout = DEFAULT_LAYOUT) -> bytes:
    """Copy of ``blob`` with a new generation and a resealed trailer."""
    out = bytearray(blob)
    struct.pack_into("<I", out, layout.generation_offset, generation & 0xFFFFFFFF)
    return bytes(seal_blob(out, layout))
