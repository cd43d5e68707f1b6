"""Read the live settings header from the reference device, with progress."""
from __future__ import annotations

import asyncio
import sys

from orca_core.errors import OrcaError
from orca_fetch.assembler import assemble
from orca_link.mock import MockTransport


def show_progress(offset: int, total: int) -> None:
    print(f"\r  {offset}/{total} bytes", end="", flush=True)


async def main() -> int:
    transport = MockTransport()
    try:
        assembled = await assemble(transport, on_progress=show_progress)
    except OrcaError as e:
        print(f"\nFAILED: {e.code}: {e}")
        return 1
    finally:
        await transport.close()

    print()
    for key, value in assembled.header.to_dict().items():
        print(f"{key:>16}: {value}")
    print(f"{'payload bytes':>16}: {len(assembled.payload)}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
