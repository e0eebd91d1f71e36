"""
TracePipe Tabular Export

Flattens built traces into a columnar pyarrow table for downstream
analytics, optionally written out as Parquet.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

import pyarrow as pa
import pyarrow.parquet as pq

from tracepipe.traces.collection import TraceCollection

if TYPE_CHECKING:
    from tracepipe.timestamps.converter import TimestampConverter

logger = logging.getLogger(__name__)

ENTRY_SCHEMA = pa.schema(
    [
        ("trace_type", pa.string()),
        ("index", pa.int64()),
        ("monotonic_ns", pa.int64()),
        ("real_ns", pa.int64()),
        ("source", pa.string()),
    ]
)


def entries_table(
    collection: TraceCollection,
    converter: Optional["TimestampConverter"] = None,
) -> pa.Table:
    """
    One row per entry of every built trace, in collection order.

    real_ns is null when no converter is given or the batch carried no
    real-time reference.
    """
    columns = {name: [] for name in ENTRY_SCHEMA.names}
    skipped = 0

    for trace in collection:
        if not trace.is_built:
            skipped += 1
            continue
        source = trace.primary_filename
        for entry in trace.entries:
            columns["trace_type"].append(trace.type.display_name)
            columns["index"].append(entry.index)
            columns["monotonic_ns"].append(entry.timestamp_ns)
            if converter is not None and converter.has_real_time:
                columns["real_ns"].append(converter.to_real_ns(entry.timestamp_ns))
            else:
                columns["real_ns"].append(None)
            columns["source"].append(source)

    if skipped:
        logger.debug(f"Skipped {skipped} trace(s) that are not built")
    return pa.table(columns, schema=ENTRY_SCHEMA)


def write_parquet(
    collection: TraceCollection,
    path: Union[str, Path],
    converter: Optional["TimestampConverter"] = None,
) -> Path:
    path = Path(path)
    table = entries_table(collection, converter)
    pq.write_table(table, path)
    logger.info(f"Wrote {table.num_rows} entries to {path}")
    return path
