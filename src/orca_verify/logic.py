import logging
from pathlib import Path

from orca_core.blob import SettingsHeader, read_header, read_magic, read_version
from orca_core.errors import Corrupt, FormatMismatch, OrcaError
from orca_core.protocol import DEFAULT_LAYOUT, SettingsLayout

from .const import ERRORS

log = logging.getLogger(__name__)


def check_format(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> None:
    """Magic and major version gate. Runs before anything else is interpreted."""
    if len(blob) < layout.min_blob_size:
        raise FormatMismatch(f"blob of {len(blob)} bytes shorter than minimum {layout.min_blob_size}")
    magic = read_magic(blob, layout)
    if magic != layout.magic:
        raise FormatMismatch(f"bad magic {magic!r}")
    major, minor = read_version(blob, layout)
    if major != layout.version_major:
        raise FormatMismatch(f"settings major version {major} != expected {layout.version_major}")
    if minor != layout.version_minor:
        log.info("Settings minor version %d differs from host %d; continuing", minor, layout.version_minor)


def check_header(header: SettingsHeader, blob_size: int, layout: SettingsLayout = DEFAULT_LAYOUT) -> None:
    # Larger headers are fine, unknown trailing header bytes are skipped.
    if header.header_size < layout.fields_end:
        raise FormatMismatch(f"header_size {header.header_size} below known fields ({layout.fields_end})")
    if header.header_size > blob_size - layout.trailer_len:
        raise FormatMismatch(f"header_size {header.header_size} overlaps trailer (blob size {blob_size})")


def validate_blob(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT) -> SettingsHeader:
    """Validate a fully assembled blob and return its parsed header.

    Order is fixed: magic/major, then trailer checksum, then header bounds.
    """
    check_format(blob, layout)
    header = read_header(blob, layout)
    if not header.crc_valid:
        raise Corrupt(
            f"trailer crc32 {header.stored_crc32:08x} != computed {header.computed_crc32:08x}"
        )
    check_header(header, len(blob), layout)
    return header


def _failure(e: OrcaError) -> dict:
    errors = [{"code": e.code, "message": ERRORS.get(e.code, str(e)), "detail": str(e)}]
    return {"status": "FAIL", "error_count": len(errors), "errors": errors}


def verify_blob(blob: bytes, layout: SettingsLayout = DEFAULT_LAYOUT, expected_size: int | None = None) -> dict:
    """Report-style verification for tooling: never raises for format failures."""
    size = layout.blob_size if expected_size is None else expected_size
    try:
        if len(blob) != size:
            raise FormatMismatch(f"blob size {len(blob)} != expected {size}")
        header = validate_blob(blob, layout)
    except OrcaError as e:
        return _failure(e)
    return {"status": "PASS", "error_count": 0, "errors": [], "header": header.to_dict()}


def verify_blob_file(path: Path, layout: SettingsLayout = DEFAULT_LAYOUT) -> dict:
    return verify_blob(Path(path).read_bytes(), layout)
