import sys
from pathlib import Path

# Default target: first generation byte, past magic and version so the
# failure is a checksum mismatch rather than a format mismatch.
DEFAULT_OFFSET = 20


def main():
    if len(sys.argv) not in (2, 3):
        print("Usage: corrupt_one_byte.py <blob> [offset]")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    idx = int(sys.argv[2]) if len(sys.argv) == 3 else DEFAULT_OFFSET
    b = bytearray(p.read_bytes())
    if idx < 0 or idx >= len(b) - 4:
        print(f"Offset {idx} outside checksummed range [0, {len(b) - 4}).")
        raise SystemExit(2)

    b[idx] ^= 0x01
    p.write_bytes(bytes(b))
    print(f"Corrupted 1 byte at offset {idx} in {p}")

if __name__ == "__main__":
    main()
