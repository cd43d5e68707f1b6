import asyncio
import struct
import threading
import time

import pytest
import serial

from orca_core.errors import Disconnected, OutOfRange, ProtocolMismatch, Timeout
from orca_core.protocol import SCHEMA_ID, SETTINGS_BLOB_SIZE
from orca_fetch.assembler import assemble
from orca_link.frames import (
    FRAME_HEADER_LEN,
    Cmd,
    DeviceErr,
    MsgType,
    encode_frame,
    encode_read_blob_request,
    try_decode_frame,
)
from orca_link.mock import MockTransport
from orca_link.serial_link import SerialTransport
from orca_link.transport import Transport


class FakeDevicePort:
    """Device end of a serial link, answering GET_INFO and READ_BLOB frames."""

    def __init__(
        self,
        blob: bytes,
        max_chunk: int = 64,
        silent: bool = False,
        report_size: int | None = None,
        stall_reads: bool = False,
        hold_first: bool = False,
    ):
        self.blob = blob
        self.max_chunk = max_chunk
        self.silent = silent
        # READ_BLOB requests are accepted but never answered.
        self.stall_reads = stall_reads
        # The first reply is only sent along with the second one.
        self.hold_first = hold_first
        self._held = None
        self.report_size = len(blob) if report_size is None else report_size
        self.is_open = True
        self.requests = []
        self._out = bytearray()

    @property
    def in_waiting(self):
        return len(self._out)

    def write(self, data):
        if not self.is_open:
            raise serial.SerialException("port closed")
        frame, _ = try_decode_frame(bytes(data))
        self.requests.append(frame)
        if self.silent:
            return len(data)
        cmd = frame.payload[0]
        if self._held is not None:
            self._out += self._held
            self._held = None
        mark = len(self._out)
        if cmd == Cmd.GET_INFO:
            payload = struct.pack("<BBBxIII", cmd, 1, 5, SCHEMA_ID, self.report_size, self.max_chunk)
            self._out += encode_frame(MsgType.RESPONSE, frame.seq, payload)
        elif self.stall_reads:
            return len(data)
        else:
            _, offset, length = struct.unpack_from("<B3xII", frame.payload)
            if offset + length > len(self.blob):
                self._out += encode_frame(MsgType.ERROR, frame.seq, bytes([cmd, DeviceErr.OUT_OF_RANGE]))
            else:
                payload = struct.pack("<B3xII", cmd, offset, length) + self.blob[offset:offset + length]
                self._out += encode_frame(MsgType.RESPONSE, frame.seq, payload)
        if self.hold_first and len(self.requests) == 1:
            self._held = bytes(self._out[mark:])
            del self._out[mark:]
        return len(data)

    def read(self, size=1):
        if not self.is_open:
            raise serial.SerialException("port closed")
        if not self._out:
            time.sleep(0.005)
            return b""
        data = bytes(self._out[:size])
        del self._out[:size]
        return data

    def cancel_read(self):
        pass

    def close(self):
        self.is_open = False


def test_frame_codec():
    wire = encode_frame(MsgType.RESPONSE, 42, b"\x01hello")
    assert len(wire) == FRAME_HEADER_LEN + 6

    assert try_decode_frame(wire[:10]) is None
    assert try_decode_frame(wire[:-1]) is None

    frame, rest = try_decode_frame(wire + b"\xaa")
    assert (frame.msg_type, frame.seq, frame.payload) == (MsgType.RESPONSE, 42, b"\x01hello")
    assert rest == b"\xaa"


def test_frame_codec_rejects_damage():
    wire = bytearray(encode_read_blob_request(1, 0, 16))
    bad_crc = bytes(wire[:-1]) + bytes([wire[-1] ^ 1])
    with pytest.raises(ProtocolMismatch):
        try_decode_frame(bad_crc)
    bad_magic = b"XXXX" + bytes(wire[4:])
    with pytest.raises(ProtocolMismatch):
        try_decode_frame(bad_magic)


def test_serial_transport_assembles_reference_blob():
    blob = MockTransport().full_blob
    port = FakeDevicePort(blob, max_chunk=200)

    async def run():
        link = SerialTransport(port, timeout=1.0)
        assert isinstance(link, Transport)
        try:
            info = await link.get_info()
            assert info.blob_size == SETTINGS_BLOB_SIZE
            assert info.max_chunk == 200
            return await assemble(link)
        finally:
            await link.close()

    assembled = asyncio.run(run())
    assert assembled.raw_bytes == blob
    # One GET_INFO from the test, one from the assembler, then the chunks.
    assert len(port.requests) == 2 + -(-SETTINGS_BLOB_SIZE // 200)
    seqs = [f.seq for f in port.requests]
    assert seqs == sorted(set(seqs))


def test_device_out_of_range_error_maps_to_out_of_range():
    port = FakeDevicePort(MockTransport().full_blob)

    async def run():
        link = SerialTransport(port, timeout=1.0)
        try:
            await link.read_chunk(SETTINGS_BLOB_SIZE - 2, 8)
        finally:
            await link.close()

    with pytest.raises(OutOfRange):
        asyncio.run(run())


def test_local_bounds_check_after_identity():
    port = FakeDevicePort(MockTransport().full_blob)

    async def run():
        link = SerialTransport(port, timeout=1.0)
        try:
            await link.get_info()
            await link.read_chunk(SETTINGS_BLOB_SIZE, 1)
        finally:
            await link.close()

    with pytest.raises(OutOfRange):
        asyncio.run(run())
    assert len(port.requests) == 1


def test_zero_size_falls_back_to_default():
    port = FakeDevicePort(MockTransport().full_blob, report_size=0)

    async def run():
        link = SerialTransport(port)
        try:
            return await link.get_info()
        finally:
            await link.close()

    assert asyncio.run(run()).blob_size == SETTINGS_BLOB_SIZE


def test_silent_device_times_out():
    port = FakeDevicePort(b"", silent=True)

    async def run():
        link = SerialTransport(port, timeout=0.1)
        try:
            await link.get_info()
        finally:
            await link.close()

    with pytest.raises(Timeout):
        asyncio.run(run())


def test_close_is_idempotent_and_terminal():
    port = FakeDevicePort(MockTransport().full_blob)

    async def run():
        link = SerialTransport(port)
        await link.close()
        await link.close()
        assert link.closed
        with pytest.raises(Disconnected):
            await link.get_info()

    asyncio.run(run())
    assert not port.is_open


def test_port_failure_is_disconnected():
    port = FakeDevicePort(MockTransport().full_blob)
    port.is_open = False

    async def run():
        link = SerialTransport(port)
        try:
            await link.get_info()
        finally:
            await link.close()

    with pytest.raises(Disconnected):
        asyncio.run(run())


class BlockingPort:
    """A port whose reads block until it is closed, with no cancel_read()."""

    def __init__(self):
        self.is_open = True
        self.in_waiting = 0
        self.writes = []
        self._closed = threading.Event()

    def write(self, data):
        self.writes.append(bytes(data))
        return len(data)

    def read(self, size=1):
        self._closed.wait()
        raise serial.SerialException("port closed")

    def close(self):
        self.is_open = False
        self._closed.set()


def test_deadline_holds_while_port_read_blocks():
    port = BlockingPort()

    async def run():
        link = SerialTransport(port, timeout=0.1)
        start = time.monotonic()
        try:
            with pytest.raises(Timeout):
                await link.get_info()
            assert time.monotonic() - start < 0.5
        finally:
            await link.close()
        assert time.monotonic() - start < 0.5

    asyncio.run(run())
    assert not port.is_open
    assert len(port.writes) == 1


def test_close_wakes_outstanding_read_chunk():
    port = FakeDevicePort(MockTransport().full_blob, stall_reads=True)

    async def run():
        link = SerialTransport(port, timeout=5.0)
        await link.get_info()
        task = asyncio.create_task(link.read_chunk(0, 16))
        while len(port.requests) < 2:
            await asyncio.sleep(0.001)
        start = time.monotonic()
        await link.close()
        with pytest.raises(Disconnected):
            await task
        assert time.monotonic() - start < 1.0

    asyncio.run(run())
    assert not port.is_open


def test_late_reply_is_discarded_and_retry_succeeds():
    port = FakeDevicePort(MockTransport().full_blob, max_chunk=128, hold_first=True)

    async def run():
        link = SerialTransport(port, timeout=0.1)
        try:
            with pytest.raises(Timeout):
                await link.get_info()
            # The reply to the abandoned request arrives ahead of this one.
            info = await link.get_info()
            data = await link.read_chunk(0, 16)
            return info, data
        finally:
            await link.close()

    info, data = asyncio.run(run())
    assert info.max_chunk == 128
    assert data == port.blob[:16]
    assert [f.seq for f in port.requests] == [1, 2, 3]
