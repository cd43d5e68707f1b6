"""Orca settings fetch - Assemble a settings blob from a device into a file."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import click
import serial

from orca_core.errors import OrcaError
from orca_core.logging_utils import LOG_LEVELS, configure_logging
from orca_core.protocol import DEFAULT_MAX_CHUNK
from orca_link.mock import MockTransport
from orca_link.serial_link import DEFAULT_TIMEOUT, SerialTransport
from orca_link.transport import Transport

from .assembler import AssembledBlob, assemble
from .evidence import write_chunk_evidence

DEFAULT_BAUDRATE = 115200
# Port-level poll interval; the request deadline is enforced by the transport.
PORT_POLL_SECONDS = 0.05


async def _fetch(transport: Transport) -> AssembledBlob:
    try:
        return await assemble(transport)
    finally:
        await transport.close()


def fetch_to_file(transport: Transport, out: Path, evidence: Optional[Path] = None) -> AssembledBlob:
    """Assemble from ``transport`` and write the validated blob to ``out``."""
    assembled = asyncio.run(_fetch(transport))
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(assembled.raw_bytes)
    if evidence is not None:
        write_chunk_evidence(assembled, evidence)
    return assembled


def _report(assembled: AssembledBlob, out: Path) -> None:
    h = assembled.header
    click.echo(f"PASS: Settings blob written to {out}")
    click.echo(f"  Version: {h.version_major}.{h.version_minor}")
    click.echo(f"  Generation: {h.generation}")
    click.echo(f"  Active profile: {h.active_profile}")
    click.echo(f"  Flags: 0x{h.flags:02x}")
    click.echo(f"  Chunks: {len(assembled.chunks)}")


def _run(transport: Transport, out: Path, evidence: Optional[Path]) -> None:
    try:
        assembled = fetch_to_file(transport, out, evidence)
    except OrcaError as e:
        # Fail closed, with a single-line reason.
        click.echo(f"FATAL: {e.code}: {e}")
        raise SystemExit(1)
    _report(assembled, out)


@click.group()
@click.option(
    "--log-level",
    envvar="ORCA_LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def main(log_level: str) -> None:
    """Fetch and validate an Orca settings blob."""
    configure_logging(log_level)


@main.command("mock")
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--max-chunk", type=click.IntRange(min=1), default=DEFAULT_MAX_CHUNK, show_default=True)
@click.option("--evidence", type=click.Path(dir_okay=False, path_type=Path), help="Write per-chunk parquet evidence")
def mock_cmd(out: Path, max_chunk: int, evidence: Optional[Path]) -> None:
    """Assemble from the in-memory reference device."""
    _run(MockTransport(max_chunk=max_chunk), out, evidence)


@main.command("serial")
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--port", envvar="ORCA_PORT", required=True, help="pyserial port name or URL")
@click.option("--baudrate", envvar="ORCA_BAUDRATE", type=int, default=DEFAULT_BAUDRATE, show_default=True)
@click.option("--timeout", envvar="ORCA_TIMEOUT", type=float, default=DEFAULT_TIMEOUT, show_default=True)
@click.option("--evidence", type=click.Path(dir_okay=False, path_type=Path), help="Write per-chunk parquet evidence")
def serial_cmd(out: Path, port: str, baudrate: int, timeout: float, evidence: Optional[Path]) -> None:
    """Assemble from a device on a serial port."""
    try:
        link = serial.serial_for_url(port, baudrate=baudrate, timeout=PORT_POLL_SECONDS)
    except serial.SerialException as e:
        click.echo(f"FATAL: cannot open {port}: {e}")
        raise SystemExit(1)
    _run(SerialTransport(link, timeout=timeout), out, evidence)


if __name__ == "__main__":
    main()
