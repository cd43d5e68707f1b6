"""Write reference settings blobs for UI development without hardware."""
import argparse
import asyncio
import json
from pathlib import Path

from orca_fetch.assembler import assemble
from orca_link.mock import MockTransport


async def _snapshot(device: MockTransport, out_dir: Path, name: str) -> dict:
    assembled = await assemble(device)
    path = out_dir / f"{name}.bin"
    path.write_bytes(assembled.raw_bytes)
    return {"file": path.name, "identity": assembled.identity.to_dict(), "header": assembled.header.to_dict()}


async def generate(out_dir: Path, commits: int) -> list[dict]:
    device = MockTransport()
    snapshots = [await _snapshot(device, out_dir, "settings-gen1")]
    for i in range(commits):
        # Profile rotates so each generation is visibly different.
        gen = device.commit(active_profile=(i + 1) % 4)
        snapshots.append(await _snapshot(device, out_dir, f"settings-gen{gen}"))
    await device.close()
    return snapshots


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("out_dir", type=Path)
    ap.add_argument("--commits", type=int, default=2, help="Extra committed generations to emit")
    args = ap.parse_args()

    args.out_dir.mkdir(parents=True, exist_ok=True)
    snapshots = asyncio.run(generate(args.out_dir, args.commits))
    (args.out_dir / "index.json").write_text(json.dumps(snapshots, indent=2, sort_keys=True))
    print(f"Wrote {len(snapshots)} reference blobs to {args.out_dir}")


if __name__ == "__main__":
    main()
