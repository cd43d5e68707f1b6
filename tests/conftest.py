import pytest

from orca_core.errors import OutOfRange
from orca_core.protocol import DEFAULT_LAYOUT
from orca_link.transport import DeviceIdentity


class StaticTransport:
    """Serves a fixed byte string, whatever it contains."""

    def __init__(self, blob: bytes, max_chunk: int = 256, layout=DEFAULT_LAYOUT, short_at: int | None = None):
        self.blob = bytes(blob)
        self.max_chunk = max_chunk
        self.layout = layout
        self.short_at = short_at
        self.reads = []
        self.closed = False

    async def get_info(self):
        return DeviceIdentity(
            schema_id=self.layout.schema_id,
            settings_major=self.layout.version_major,
            settings_minor=self.layout.version_minor,
            blob_size=len(self.blob),
            max_chunk=self.max_chunk,
        )

    async def read_chunk(self, offset, length):
        if offset + length > len(self.blob):
            raise OutOfRange(f"{offset}+{length}")
        self.reads.append((offset, length))
        data = self.blob[offset:offset + length]
        if self.short_at == offset:
            return data[:-1]
        return data

    async def close(self):
        self.closed = True


@pytest.fixture
def static_transport():
    return StaticTransport
