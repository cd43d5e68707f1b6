"""Orca Fetch - Chunked settings blob assembly."""
from .assembler import AssembledBlob, BlobAssembler, ChunkRecord, assemble

__all__ = ["AssembledBlob", "BlobAssembler", "ChunkRecord", "assemble"]
