from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from orca_core.blob import SettingsHeader
from orca_core.errors import OrcaError, ProtocolMismatch
from orca_core.protocol import DEFAULT_LAYOUT, SettingsLayout
from orca_link.transport import DeviceIdentity, Transport
from orca_verify.logic import validate_blob

log = logging.getLogger(__name__)

ProgressFn = Callable[[int, int], None]


@dataclass(frozen=True)
class ChunkRecord:
    offset: int
    length: int
    content_hash: str


@dataclass(frozen=True)
class AssembledBlob:
    raw_bytes: bytes
    identity: DeviceIdentity
    header: SettingsHeader
    payload: bytes
    chunks: tuple[ChunkRecord, ...] = ()

    @property
    def generation(self) -> int:
        return self.header.generation

    @property
    def active_profile(self) -> int:
        return self.header.active_profile

    @property
    def flags(self) -> int:
        return self.header.flags


class BlobAssembler:
    """Rebuild a settings blob from a transport: the device is truth.

    - Chunk boundaries are chosen here and never exceed the advertised max chunk.
    - Reads are strictly sequential, in increasing offset order.
    - Any failure aborts the pass; nothing partial is returned and nothing is retried.
    """

    def __init__(
        self,
        transport: Transport,
        layout: SettingsLayout = DEFAULT_LAYOUT,
        on_progress: Optional[ProgressFn] = None,
    ):
        self.transport = transport
        self.layout = layout
        self.on_progress = on_progress
        self.stats = {"passes": 0, "chunks": 0, "bytes": 0}

    def _progress(self, offset: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(offset, total)

    def _check_identity(self, identity: DeviceIdentity) -> None:
        if identity.max_chunk < 1:
            raise ProtocolMismatch(f"device max chunk {identity.max_chunk} is not positive")
        if identity.blob_size < self.layout.min_blob_size:
            raise ProtocolMismatch(
                f"device blob size {identity.blob_size} below minimum {self.layout.min_blob_size}"
            )
        if identity.settings_major != self.layout.version_major:
            log.warning(
                "Device reports settings v%d.%d, host expects major %d",
                identity.settings_major,
                identity.settings_minor,
                self.layout.version_major,
            )

    async def _read_all(self, identity: DeviceIdentity) -> tuple[bytes, list[ChunkRecord]]:
        size = identity.blob_size
        buf = bytearray(size)
        chunks: list[ChunkRecord] = []
        offset = 0
        while offset < size:
            length = min(identity.max_chunk, size - offset)
            self._progress(offset, size)
            data = await self.transport.read_chunk(offset, length)
            if len(data) != length:
                raise ProtocolMismatch(f"chunk at offset {offset}: got {len(data)} of {length} bytes")
            buf[offset:offset + length] = data
            chunks.append(ChunkRecord(offset, length, hashlib.sha256(data).hexdigest()))
            log.debug("Read chunk offset=%d length=%d", offset, length)
            offset += length
        self._progress(size, size)
        return bytes(buf), chunks

    async def assemble(self) -> AssembledBlob:
        self.stats["passes"] += 1
        try:
            identity = await self.transport.get_info()
            log.info(
                "Device schema=%08x settings v%d.%d blob=%d max_chunk=%d",
                identity.schema_id,
                identity.settings_major,
                identity.settings_minor,
                identity.blob_size,
                identity.max_chunk,
            )
            self._check_identity(identity)
            blob, chunks = await self._read_all(identity)
            header = validate_blob(blob, self.layout)
        except OrcaError as e:
            log.warning("Assembly failed (%s): %s", e.code, e)
            raise

        self.stats["chunks"] += len(chunks)
        self.stats["bytes"] += len(blob)
        body = self.layout.payload_range(header.header_size, len(blob))
        return AssembledBlob(
            raw_bytes=blob,
            identity=identity,
            header=header,
            payload=blob[body.start:body.stop],
            chunks=tuple(chunks),
        )


async def assemble(
    transport: Transport,
    layout: SettingsLayout = DEFAULT_LAYOUT,
    on_progress: Optional[ProgressFn] = None,
) -> AssembledBlob:
    """One assembly pass against ``transport``."""
    return await BlobAssembler(transport, layout, on_progress).assemble()
