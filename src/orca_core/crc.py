"""Checksums used by the settings blob and the serial framing."""
from __future__ import annotations

import zlib
from typing import Iterable

CRC32C_POLY_REFLECTED = 0x82F63B78

CRC32C_TABLE: list[int] = []


def crc32(data: bytes) -> int:
    """Blob trailer checksum: IEEE CRC-32, reflected, init/xorout 0xFFFFFFFF."""
    return zlib.crc32(data) & 0xFFFFFFFF


def _init_crc32c_table() -> None:
    if CRC32C_TABLE:
        return
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ CRC32C_POLY_REFLECTED
            else:
                crc >>= 1
        CRC32C_TABLE.append(crc & 0xFFFFFFFF)


def crc32c(chunks: Iterable[bytes]) -> int:
    """Castagnoli CRC over the concatenation of ``chunks`` (serial frame check)."""
    _init_crc32c_table()
    crc = 0xFFFFFFFF
    for chunk in chunks:
        for byte in chunk:
            crc = CRC32C_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return (~crc) & 0xFFFFFFFF
