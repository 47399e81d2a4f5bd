"""Filing assembly and record writing."""

from .assembly import (
    AssemblyStage,
    AssemblyState,
    FilingAssembler,
    WorkItem,
    WorkKind,
    advance,
    resolve_documents,
    run_queue,
    seed_from_feed,
    seed_from_index,
    start_assembly,
)
from .writer import ChunkedRecordWriter, serialize_record, split_payload

__all__ = [
    "AssemblyStage",
    "AssemblyState",
    "ChunkedRecordWriter",
    "FilingAssembler",
    "WorkItem",
    "WorkKind",
    "advance",
    "resolve_documents",
    "run_queue",
    "seed_from_feed",
    "seed_from_index",
    "serialize_record",
    "split_payload",
    "start_assembly",
]
