"""Serial-style link speaking the framed Orca config protocol.

The port is opened by the host (device discovery is not our concern); this
module only speaks the protocol over it. Blocking port reads and writes run
on their own threads so the event loop never blocks, and requests are
serialized because the link is half-duplex in practice. Every request is
bounded by the link deadline, even while a port read is still blocked, and
replies to earlier, abandoned requests are discarded by sequence number.
"""
from __future__ import annotations

import asyncio
import logging
import struct
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import serial

from orca_core.errors import Disconnected, ProtocolMismatch, Timeout
from orca_core.protocol import DEFAULT_MAX_CHUNK, SETTINGS_BLOB_SIZE, check_span

from .frames import (
    GET_INFO_RESP_LEN,
    READ_BLOB_RESP_HEADER_LEN,
    Cmd,
    Frame,
    MsgType,
    device_error,
    encode_get_info_request,
    encode_read_blob_request,
    try_decode_frame,
)
from .transport import DeviceIdentity

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0


class SerialTransport:
    def __init__(self, port: serial.SerialBase, timeout: float = DEFAULT_TIMEOUT):
        self._port = port
        self.timeout = timeout
        # Reads may block indefinitely, so writes get their own thread.
        self._reader = ThreadPoolExecutor(max_workers=1, thread_name_prefix="orca-serial-rx")
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="orca-serial-tx")
        self._lock = asyncio.Lock()
        self._rx = b""
        self._seq = 1
        self._closed = False
        self._identity: Optional[DeviceIdentity] = None
        self._pending_read: Optional[asyncio.Future] = None
        self._close_waiter: Optional[asyncio.Future] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_seq(self) -> int:
        seq = self._seq
        self._seq = (self._seq + 1) & 0xFFFFFFFF or 1
        return seq

    def _read_some(self) -> bytes:
        return self._port.read(max(1, self._port.in_waiting))

    async def _wait(self, fut: asyncio.Future, deadline: float, cmd: int):
        """Await blocking I/O, bounded by the request deadline and by close()."""
        loop = asyncio.get_running_loop()
        remaining = deadline - loop.time()
        if remaining > 0:
            await asyncio.wait({fut, self._close_waiter}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
        if self._closed:
            raise Disconnected("serial transport closed during request")
        if not fut.done():
            raise Timeout(f"no response to command {cmd} within {self.timeout}s")
        try:
            return fut.result()
        except serial.SerialException as e:
            raise Disconnected(f"serial link lost: {e}") from e

    def _start_read(self, loop: asyncio.AbstractEventLoop) -> asyncio.Future:
        # An unfinished read survives a timeout so its bytes reach the next request.
        fut = self._pending_read
        if fut is None or fut.get_loop() is not loop:
            fut = loop.run_in_executor(self._reader, self._read_some)
            fut.add_done_callback(_consume)
            self._pending_read = fut
        return fut

    async def _exchange(self, request: bytes, seq: int, cmd: int) -> Frame:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        write = loop.run_in_executor(self._writer, self._port.write, request)
        write.add_done_callback(_consume)
        await self._wait(write, deadline, cmd)
        while True:
            decoded = try_decode_frame(self._rx)
            if decoded is not None:
                frame, self._rx = decoded
                if frame.msg_type in (MsgType.RESPONSE, MsgType.ERROR) and frame.seq != seq:
                    log.debug("Dropping stale frame seq=%d (waiting for %d)", frame.seq, seq)
                    continue
                return frame
            data = await self._wait(self._start_read(loop), deadline, cmd)
            self._pending_read = None
            self._rx += data

    async def _request(self, request: bytes, seq: int, cmd: int) -> Frame:
        async with self._lock:
            if self._closed:
                raise Disconnected("serial transport closed")
            self._close_waiter = asyncio.get_running_loop().create_future()
            try:
                frame = await self._exchange(request, seq, cmd)
            finally:
                self._close_waiter = None

        if frame.msg_type == MsgType.ERROR:
            raise device_error(frame.payload)
        if frame.msg_type != MsgType.RESPONSE or not frame.payload or frame.payload[0] != cmd:
            raise ProtocolMismatch(f"unexpected frame type {frame.msg_type} for command {cmd}")
        if frame.seq != seq:
            raise ProtocolMismatch(f"response seq {frame.seq} != request seq {seq}")
        return frame

    async def get_info(self) -> DeviceIdentity:
        seq = self._next_seq()
        frame = await self._request(encode_get_info_request(seq), seq, Cmd.GET_INFO)
        payload = frame.payload
        if len(payload) < GET_INFO_RESP_LEN:
            raise ProtocolMismatch(f"bad GET_INFO response length {len(payload)}")
        _, major, minor, schema_id, blob_size, max_chunk = struct.unpack_from("<BBBxIII", payload)
        self._identity = DeviceIdentity(
            schema_id=schema_id,
            settings_major=major,
            settings_minor=minor,
            # Older firmware reports zero for the fixed defaults.
            blob_size=blob_size or SETTINGS_BLOB_SIZE,
            max_chunk=max_chunk or DEFAULT_MAX_CHUNK,
        )
        log.debug("Serial device identity %s", self._identity)
        return self._identity

    async def read_chunk(self, offset: int, length: int) -> bytes:
        if self._identity is not None:
            check_span(offset, length, self._identity.blob_size)
        seq = self._next_seq()
        frame = await self._request(encode_read_blob_request(seq, offset, length), seq, Cmd.READ_BLOB)
        payload = frame.payload
        if len(payload) < READ_BLOB_RESP_HEADER_LEN:
            raise ProtocolMismatch(f"bad READ_BLOB response length {len(payload)}")
        got_offset, got_len = struct.unpack_from("<II", payload, 4)
        if got_offset != offset or got_len != length:
            raise ProtocolMismatch(f"READ_BLOB echo mismatch (offset={got_offset}, len={got_len})")
        data = payload[READ_BLOB_RESP_HEADER_LEN:READ_BLOB_RESP_HEADER_LEN + got_len]
        if len(data) != got_len:
            raise ProtocolMismatch(f"short READ_BLOB payload: {len(data)} of {got_len}")
        return data

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._close_waiter is not None and not self._close_waiter.done():
            self._close_waiter.set_result(None)
        # Wake a read blocked in the I/O thread; not every platform supports it.
        cancel = getattr(self._port, "cancel_read", None)
        if cancel is not None:
            cancel()
        try:
            # Not on the reader thread: it may still be blocked.
            await asyncio.to_thread(self._port.close)
        finally:
            self._reader.shutdown(wait=False)
            self._writer.shutdown(wait=False)
            self._pending_read = None
            self._rx = b""
        log.debug("Serial transport closed")


def _consume(fut: asyncio.Future) -> None:
    # Abandoned I/O futures finish after a timeout or close; mark their errors retrieved.
    if not fut.cancelled():
        fut.exception()
