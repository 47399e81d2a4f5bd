"""One-JSON-file-per-record dataset directory."""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..crawl.writer import is_fragment, serialize_record

log = logging.getLogger(__name__)

FRAGMENT_SEPARATOR = "__part"


def _validate_path_component(value: str, name: str) -> str:
    """Validate a value is safe to use as a file name.

    Raises:
        ValueError: If the value is empty or contains anything but
            alphanumerics, dash and underscore
    """
    if not value:
        raise ValueError(f"{name} cannot be empty")
    if not re.match(r"^[\w\-]+$", value):
        raise ValueError(f"{name} contains invalid characters: {value!r}")
    return value


def record_filename(record: dict) -> str:
    """
    File name of a record: `{external_id}.json` for whole filings and
    `{correlation_id}__part{index:05d}.json` for fragments.
    """
    if is_fragment(record):
        correlation_id = _validate_path_component(str(record["_multipart_id"]), "correlation id")
        return f"{correlation_id}{FRAGMENT_SEPARATOR}{int(record['_part_index']):05d}.json"
    external_id = _validate_path_component(str(record.get("external_id") or ""), "external_id")
    return f"{external_id}.json"


@dataclass
class PassReport:
    """Outcome counts of one pass over a dataset directory."""

    name: str
    groups: int = 0
    written: int = 0
    deleted: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"{self.name}: {self.groups} groups, {self.written} written, "
            f"{self.deleted} deleted, {self.failed} failed"
        )


class DatasetSink:
    """Writes each record to its own JSON file in dataset_dir."""

    def __init__(self, dataset_dir: Path) -> None:
        self.dataset_dir = Path(dataset_dir)
        self.dataset_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, record: dict) -> Path:
        return self.dataset_dir / record_filename(record)

    def write(self, record: dict) -> Path:
        path = self.path_for(record)
        path.write_text(serialize_record(record), encoding="utf-8")
        log.debug("Wrote %s", path.name)
        return path


def list_record_files(dataset_dir: Path) -> list[Path]:
    """
    Sorted record files of a dataset directory.

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    dataset_dir = Path(dataset_dir)
    if not dataset_dir.is_dir():
        raise FileNotFoundError(f"Dataset directory not found: {dataset_dir}")
    return sorted(dataset_dir.glob("*.json"))


def load_record(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def iter_records(dataset_dir: Path, fragments: bool = False) -> Iterator[tuple[Path, dict]]:
    """
    Stream (path, record) pairs, one file at a time.

    Unreadable files are logged and skipped. Fragment files are only yielded
    when fragments=True, and then exclusively.

    Raises:
        FileNotFoundError: If the dataset directory does not exist
    """
    for path in list_record_files(dataset_dir):
        try:
            record = load_record(path)
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Skipping unreadable record %s: %s", path.name, e)
            continue
        if not isinstance(record, dict):
            log.warning("Skipping non-object record %s", path.name)
            continue
        if is_fragment(record) != fragments:
            continue
        yield path, record
