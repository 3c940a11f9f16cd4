"""Compile a BAML file into an inspection bundle.

Layout:
    records.parquet   one row per record (offset, length, opcode, target, hash)
    tree.json         element tree, canonical JSON
    manifest.json     source hash, counts and file list
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from baml_core import Document, build_tree, loads

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}

RECORD_SCHEMA = pa.schema(
    [
        ("index", pa.int32()),
        ("offset", pa.int64()),
        ("length", pa.int32()),
        ("opcode", pa.int32()),
        ("record_type", pa.string()),
        ("target_index", pa.int32()),
        ("content_hash", pa.string()),
    ]
)


def record_rows(doc: Document, raw: bytes) -> list[dict]:
    """One row per record. `raw` must be the bytes `doc` was decoded from."""
    rows: list[dict] = []
    ends = doc.positions[1:] + [len(raw)]
    for i, (record, start, end) in enumerate(zip(doc.records, doc.positions, ends)):
        rows.append(
            {
                "index": i,
                "offset": int(start),
                "length": int(end - start),
                "opcode": int(record.type),
                "record_type": record.name,
                "target_index": doc.references.get(i),
                "content_hash": hashlib.sha256(raw[start:end]).hexdigest(),
            }
        )
    return rows


def compile_record_index(baml_path: Path, out_path: Path) -> dict:
    """Decode `baml_path`, rebuild its tree and write the bundle to `out_path`."""
    baml_path = Path(baml_path)
    out_path = Path(out_path)
    print(f"Indexing BAML: {baml_path}")

    raw = baml_path.read_bytes()
    source_hash = hashlib.sha256(raw).hexdigest()

    doc = loads(raw)
    root = build_tree(doc.records)

    out_path.mkdir(parents=True, exist_ok=True)

    rows = record_rows(doc, raw)
    df = pd.DataFrame(rows, columns=RECORD_SCHEMA.names)
    df["target_index"] = df["target_index"].astype("Int32")
    table = pa.Table.from_pandas(df, schema=RECORD_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path / "records.parquet")

    (out_path / "tree.json").write_bytes(
        json.dumps(root.to_dict(), **CANONICAL_JSON_KW).encode("utf-8")
    )

    manifest = {
        "source": baml_path.name,
        "source_hash": source_hash,
        "records": len(doc.records),
        "deferred": len(doc.references),
        "elements": sum(1 for _ in root.walk()),
        "files": ["records.parquet", "tree.json"],
    }
    (out_path / "manifest.json").write_bytes(json.dumps(manifest, **CANONICAL_JSON_KW).encode("utf-8"))

    print(f"PASS: Index generated at {out_path}")
    print(f"  Records: {manifest['records']}")
    print(f"  Deferred: {manifest['deferred']}")
    print(f"  Elements: {manifest['elements']}")
    return manifest
