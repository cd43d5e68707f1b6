"""Serial framing for the Orca config protocol.

Frame: [Magic(4) | ProtoVer(1) | MsgType(1) | PayloadLen(2) | Seq(4) | CRC32C(4)] + payload.
The CRC covers the header with its CRC field zeroed, followed by the payload.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from orca_core.crc import crc32c
from orca_core.errors import OrcaError, OutOfRange, ProtocolMismatch

PROTO_MAGIC = 0x4143524F
PROTO_VERSION = 1

FRAME_HEADER_FMT = "<IBBHII"
FRAME_HEADER_LEN = 16
MAX_PAYLOAD_LEN = 0xFFFF

READ_BLOB_RESP_HEADER_LEN = 12
GET_INFO_RESP_LEN = 16


class MsgType(IntEnum):
    REQUEST = 1
    RESPONSE = 2
    ERROR = 3


class Cmd(IntEnum):
    GET_INFO = 1
    READ_BLOB = 2


class DeviceErr(IntEnum):
    OK = 0
    BAD_REQUEST = 1
    OUT_OF_RANGE = 2
    BUSY = 3
    INTERNAL_ERROR = 0xFF


@dataclass(frozen=True)
class Frame:
    msg_type: int
    seq: int
    payload: bytes


def encode_frame(msg_type: int, seq: int, payload: bytes) -> bytes:
    if len(payload) > MAX_PAYLOAD_LEN:
        raise ValueError(f"payload of {len(payload)} bytes exceeds frame limit")
    header = struct.pack(FRAME_HEADER_FMT, PROTO_MAGIC, PROTO_VERSION, msg_type, len(payload), seq & 0xFFFFFFFF, 0)
    crc = crc32c([header, payload])
    return header[:12] + struct.pack("<I", crc) + payload


def try_decode_frame(buffer: bytes) -> Optional[tuple[Frame, bytes]]:
    """Decode one frame from the front of ``buffer``.

    Returns ``None`` until a whole frame is buffered, else ``(frame, remaining)``.
    """
    if len(buffer) < FRAME_HEADER_LEN:
        return None
    magic, ver, msg_type, payload_len, seq, crc = struct.unpack_from(FRAME_HEADER_FMT, buffer)
    if magic != PROTO_MAGIC:
        raise ProtocolMismatch(f"bad frame magic {magic:08x}")
    if ver != PROTO_VERSION:
        raise ProtocolMismatch(f"bad protocol version {ver}")

    total = FRAME_HEADER_LEN + payload_len
    if len(buffer) < total:
        return None

    header = bytes(buffer[:12]) + b"\x00\x00\x00\x00"
    payload = bytes(buffer[FRAME_HEADER_LEN:total])
    expected = crc32c([header, payload])
    if crc != expected:
        raise ProtocolMismatch(f"bad frame crc32c {crc:08x} != {expected:08x}")
    return Frame(msg_type, seq, payload), bytes(buffer[total:])


def encode_get_info_request(seq: int) -> bytes:
    return encode_frame(MsgType.REQUEST, seq, bytes([Cmd.GET_INFO]))


def encode_read_blob_request(seq: int, offset: int, length: int) -> bytes:
    payload = struct.pack("<B3xII", Cmd.READ_BLOB, offset, length)
    return encode_frame(MsgType.REQUEST, seq, payload)


def parse_error_payload(payload: bytes) -> tuple[int, int]:
    cmd = payload[0] if len(payload) > 0 else 0
    err = payload[1] if len(payload) > 1 else DeviceErr.INTERNAL_ERROR
    return cmd, err


def device_error(payload: bytes) -> OrcaError:
    cmd, err = parse_error_payload(payload)
    if err == DeviceErr.OUT_OF_RANGE:
        return OutOfRange(f"device rejected command {cmd}: out of range")
    return ProtocolMismatch(f"device error {err} for command {cmd}")
