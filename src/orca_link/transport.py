"""Transport capability shared by every physical link and the mock device."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DeviceIdentity:
    """Fixed for the lifetime of a connection; fetched before any chunk read."""

    schema_id: int
    settings_major: int
    settings_minor: int
    blob_size: int
    max_chunk: int

    def to_dict(self) -> dict:
        return {
            "schema_id": f"{self.schema_id:08x}",
            "settings_major": self.settings_major,
            "settings_minor": self.settings_minor,
            "blob_size": self.blob_size,
            "max_chunk": self.max_chunk,
        }


@runtime_checkable
class Transport(Protocol):
    """Chunked, bounds-checked, read-only access to a device settings blob.

    Implementations are not required to support concurrent outstanding reads.
    ``read_chunk`` returns exactly ``length`` bytes or raises ``OutOfRange``,
    ``Disconnected`` or ``Timeout``. ``close`` is idempotent and makes any
    in-flight read fail with ``Disconnected``.
    """

    async def get_info(self) -> DeviceIdentity: ...

    async def read_chunk(self, offset: int, length: int) -> bytes: ...

    async def close(self) -> None: ...
