"""Write completed records, splitting those over the sink's size ceiling."""

import json
import logging
import uuid
from typing import Protocol

log = logging.getLogger(__name__)

DEFAULT_MAX_RECORD_BYTES = 9_000_000


class RecordSink(Protocol):
    def write(self, record: dict) -> None: ...


def serialize_record(record: dict) -> str:
    """Compact JSON text of a record."""
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


def split_payload(payload: str, correlation_id: str, max_bytes: int) -> list[dict]:
    """
    Split a serialized record into ordered fragment envelopes.

    Each envelope carries the shared correlation id, its zero-based index and
    the total count. Escaping can make an envelope larger than its slice, so
    every envelope is measured on its own and the slice shrinks by the
    overshoot until it fits.

    Args:
        payload: Serialized record
        correlation_id: Id shared by all fragments
        max_bytes: Ceiling for each envelope's own serialization

    Returns:
        Envelopes whose _part_data concatenate back to payload

    Raises:
        ValueError: If max_bytes cannot fit even a one-character slice
    """
    # The count is unknown until the split is done; measuring with the largest
    # possible count keeps every envelope within the ceiling once it is known.
    count_bound = max(len(payload), 1)

    slices: list[str] = []
    start = 0
    while start < len(payload):
        size = min(max_bytes, len(payload) - start)
        while True:
            chunk = payload[start : start + size]
            envelope = {
                "_multipart_id": correlation_id,
                "_part_index": len(slices),
                "_part_count": count_bound,
                "_part_data": chunk,
            }
            overshoot = _size(serialize_record(envelope)) - max_bytes
            if overshoot <= 0:
                break
            if size == 1:
                raise ValueError(f"Record ceiling of {max_bytes} bytes is too small for a fragment")
            # Escaped characters take several bytes, so the overshoot can exceed the slice
            size = size - overshoot if overshoot < size else size // 2
        slices.append(chunk)
        start += size

    return [
        {
            "_multipart_id": correlation_id,
            "_part_index": i,
            "_part_count": len(slices),
            "_part_data": chunk,
        }
        for i, chunk in enumerate(slices)
    ]


def is_fragment(record: dict) -> bool:
    return "_multipart_id" in record


class ChunkedRecordWriter:
    """Pass records to a sink, fragmenting those larger than max_record_bytes."""

    def __init__(self, sink: RecordSink, max_record_bytes: int = DEFAULT_MAX_RECORD_BYTES) -> None:
        self.sink = sink
        self.max_record_bytes = max_record_bytes

    def write(self, record: dict) -> list[dict]:
        """
        Write a record whole, or as fragments when it is too large.

        Returns:
            The records handed to the sink
        """
        payload = serialize_record(record)
        size = _size(payload)
        if size <= self.max_record_bytes:
            self.sink.write(record)
            return [record]

        correlation_id = uuid.uuid4().hex
        parts = split_payload(payload, correlation_id, self.max_record_bytes)
        log.info(
            "Record %s is %d bytes; writing %d fragments (%s)",
            record.get("external_id"),
            size,
            len(parts),
            correlation_id,
        )
        for part in parts:
            self.sink.write(part)
        return parts
