"""In-memory reference device.

Produces a byte-exact, sealed settings blob and serves it through the same
contract as a real link, for tests and for UI work without hardware.
"""
from __future__ import annotations

import asyncio
import logging
import struct
from typing import Optional

from orca_core.blob import build_blob, with_generation
from orca_core.errors import Disconnected, OutOfRange, Timeout
from orca_core.protocol import DEFAULT_LAYOUT, DEFAULT_MAX_CHUNK, SettingsLayout, check_span

from .transport import DeviceIdentity

log = logging.getLogger(__name__)


class MockTransport:
    def __init__(
        self,
        layout: SettingsLayout = DEFAULT_LAYOUT,
        max_chunk: int = DEFAULT_MAX_CHUNK,
        payload: bytes = b"",
        latency: float = 0.0,
        deadline: Optional[float] = None,
    ):
        self.layout = layout
        self.max_chunk = max_chunk
        self.latency = latency
        self.deadline = deadline
        self.reads: list[tuple[int, int]] = []
        self._blob = build_blob(layout, payload=payload)
        self._closed = False
        self._waiters: set[asyncio.Future] = set()

    @property
    def full_blob(self) -> bytes:
        return self._blob

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def generation(self) -> int:
        (gen,) = struct.unpack_from("<I", self._blob, self.layout.generation_offset)
        return gen

    def identity(self) -> DeviceIdentity:
        return DeviceIdentity(
            schema_id=self.layout.schema_id,
            settings_major=self.layout.version_major,
            settings_minor=self.layout.version_minor,
            blob_size=len(self._blob),
            max_chunk=self.max_chunk,
        )

    async def get_info(self) -> DeviceIdentity:
        if self._closed:
            raise Disconnected("mock transport closed")
        return self.identity()

    async def read_chunk(self, offset: int, length: int) -> bytes:
        if self._closed:
            raise Disconnected("mock transport closed")
        check_span(offset, length, len(self._blob))
        self.reads.append((offset, length))
        if self.latency > 0:
            await self._wait_latency()
        # Snapshot at completion; a commit during the wait is visible, like flash.
        data = self._blob[offset:offset + length]
        if len(data) != length:
            raise OutOfRange(f"short read at offset {offset}: {len(data)} of {length}")
        return data

    async def _wait_latency(self) -> None:
        # One future per wait, owned by the running loop; close() resolves them.
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        wait = self.latency
        if self.deadline is not None and self.deadline < wait:
            wait = self.deadline
        try:
            await asyncio.wait_for(waiter, timeout=wait)
        except asyncio.TimeoutError:
            if self.deadline is not None and self.latency > self.deadline:
                raise Timeout(f"no response within {self.deadline}s") from None
            return
        finally:
            self._waiters.discard(waiter)
        raise Disconnected("mock transport closed during read")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)
        log.debug("Mock transport closed")

    def commit(self, payload: Optional[bytes] = None, active_profile: Optional[int] = None) -> int:
        """Simulate a device-side settings commit. Returns the new generation."""
        generation = (self.generation + 1) & 0xFFFFFFFF
        blob = bytearray(self._blob)
        if payload is not None:
            body = self.layout.payload_range(self.layout.header_size, len(blob))
            if len(payload) > len(body):
                raise ValueError(f"payload of {len(payload)} bytes exceeds payload range of {len(body)}")
            blob[body.start:body.stop] = payload.ljust(len(body), b"\x00")
        if active_profile is not None:
            blob[self.layout.active_profile_offset] = active_profile & 0xFF
        self._blob = with_generation(bytes(blob), generation, self.layout)
        log.info("Mock device committed generation %d", generation)
        return generation

    def reset_defaults(self) -> int:
        generation = (self.generation + 1) & 0xFFFFFFFF
        self._blob = build_blob(self.layout, generation=generation)
        log.info("Mock device reset to defaults at generation %d", generation)
        return generation
