from __future__ import annotations

from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .assembler import AssembledBlob

EVIDENCE_SCHEMA = pa.schema(
    [
        ("chunk", pa.int32()),
        ("generation", pa.int64()),
        ("offset", pa.int64()),
        ("length", pa.int32()),
        ("status", pa.string()),
        ("content_hash", pa.string()),
    ]
)


def chunk_evidence(assembled: AssembledBlob) -> pd.DataFrame:
    """One row per chunk read, in transfer order."""
    return pd.DataFrame(
        [
            {
                "chunk": i,
                "generation": assembled.generation,
                "offset": c.offset,
                "length": c.length,
                "status": "VERIFIED",
                "content_hash": c.content_hash,
            }
            for i, c in enumerate(assembled.chunks)
        ],
        columns=EVIDENCE_SCHEMA.names,
    )


def write_chunk_evidence(assembled: AssembledBlob, out_path: Path) -> None:
    """Write the per-chunk evidence of one assembly pass as parquet."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df = chunk_evidence(assembled)
    table = pa.Table.from_pandas(df, schema=EVIDENCE_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path)
