"""Orca Verify - Settings blob validation and reports."""
from .logic import validate_blob, verify_blob, verify_blob_file

__all__ = ["validate_blob", "verify_blob", "verify_blob_file"]
