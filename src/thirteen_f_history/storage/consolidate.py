"""
Offline consolidation of a dataset directory.

Two idempotent passes, run in this order:

1. Fragment reassembly: fragments sharing a correlation id are concatenated
   back into the whole record they were split from.
2. Amendment merge: versions of the same filing are collapsed into the
   newest one, which keeps references to the versions it supersedes.
"""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from ..crawl.writer import serialize_record
from ..errors import ConsolidationIntegrityError
from .dataset import PassReport, iter_records, load_record, record_filename

log = logging.getLogger(__name__)


@dataclass
class _Fragment:
    index: object
    count: object
    path: Path


def _reassemble_group(correlation_id: str, fragments: list[_Fragment]) -> tuple[str, dict]:
    """
    Concatenate a fragment group back into its payload.

    Raises:
        ConsolidationIntegrityError: If a sequence index is missing or
            duplicated, or the payload is not valid JSON
    """
    for f in fragments:
        if isinstance(f.index, bool) or not isinstance(f.index, int):
            raise ConsolidationIntegrityError(
                f"Fragment {f.path.name} has no valid sequence index: {f.index!r}",
                correlation_id=correlation_id,
            )

    fragments = sorted(fragments, key=lambda f: f.index)
    indices = [f.index for f in fragments]
    if indices != list(range(len(fragments))):
        raise ConsolidationIntegrityError(
            f"Fragment indices {indices} are not contiguous from 0",
            correlation_id=correlation_id,
        )

    counts = {f.count for f in fragments if f.count is not None}
    if counts and counts != {len(fragments)}:
        raise ConsolidationIntegrityError(
            f"Expected {sorted(map(str, counts))} fragments, found {len(fragments)}",
            correlation_id=correlation_id,
        )

    payload = "".join(load_record(f.path)["_part_data"] for f in fragments)
    try:
        record = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ConsolidationIntegrityError(
            f"Reassembled payload is not valid JSON: {e}", correlation_id=correlation_id
        ) from e
    if not isinstance(record, dict):
        raise ConsolidationIntegrityError(
            "Reassembled payload is not a record", correlation_id=correlation_id
        )
    return payload, record


def reassemble_fragments(dataset_dir: Path) -> PassReport:
    """
    Replace each complete fragment group with the whole record it encodes.

    The whole record is written with the exact concatenated payload before
    its fragments are deleted. Broken groups are logged and left in place.
    """
    dataset_dir = Path(dataset_dir)
    report = PassReport("reassemble")

    groups: dict[str, list[_Fragment]] = defaultdict(list)
    for path, record in iter_records(dataset_dir, fragments=True):
        groups[record["_multipart_id"]].append(
            _Fragment(record.get("_part_index"), record.get("_part_count"), path)
        )

    for correlation_id, fragments in groups.items():
        if len(fragments) < 2:
            continue
        report.groups += 1

        try:
            payload, record = _reassemble_group(correlation_id, fragments)
            target = dataset_dir / record_filename(record)
        except (ConsolidationIntegrityError, OSError, ValueError, KeyError) as e:
            log.error("Leaving fragments of %s in place: %s", correlation_id, e)
            report.failed += 1
            continue

        target.write_text(payload, encoding="utf-8")
        report.written += 1
        for fragment in fragments:
            fragment.path.unlink()
            report.deleted += 1
        log.info(
            "Reassembled %s from %d fragments (%s)", target.name, len(fragments), correlation_id
        )

    log.info("%s", report)
    return report


@dataclass
class _Version:
    external_id: str
    report_date: str | None
    directory_url: str
    is_amendment: bool
    path: Path

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.report_date or "", self.external_id)


def _group_key(record: dict, per_period: bool) -> tuple | None:
    file_number = record.get("file_number")
    if not file_number:
        return None
    if per_period:
        return (file_number, record.get("report_date"))
    return (file_number,)


def merge_amendments(dataset_dir: Path, per_period: bool = False) -> PassReport:
    """
    Collapse amended versions of a filing into the newest version.

    Records are grouped by filer file number, or by file number and report
    date when per_period is set. A group is merged when it holds at least two
    records and at least one of them declares an amendment type. Versions are
    ordered by (report_date, external_id); the last one is kept and gets
    previous_versions entries for all the others, which are deleted.

    Args:
        dataset_dir: Dataset directory
        per_period: Keep separate report periods of one filer apart

    Returns:
        PassReport
    """
    dataset_dir = Path(dataset_dir)
    report = PassReport("merge-amendments")

    groups: dict[tuple, list[_Version]] = defaultdict(list)
    for path, record in iter_records(dataset_dir):
        key = _group_key(record, per_period)
        if key is None:
            log.debug("No file number on %s, not merging", path.name)
            continue
        groups[key].append(
            _Version(
                external_id=str(record.get("external_id") or ""),
                report_date=record.get("report_date"),
                directory_url=record.get("directory_url") or "",
                is_amendment=bool(record.get("amendment_type")),
                path=path,
            )
        )

    for key, versions in groups.items():
        if len(versions) < 2 or not any(v.is_amendment for v in versions):
            continue
        report.groups += 1

        versions.sort(key=lambda v: v.sort_key)
        *superseded, latest = versions

        try:
            canonical = load_record(latest.path)
            previous = list(canonical.get("previous_versions") or [])
            for version in superseded:
                # Versions merged earlier travel along with their successor
                previous.extend(load_record(version.path).get("previous_versions") or [])
                previous.append(
                    {
                        "external_id": version.external_id,
                        "report_date": version.report_date,
                        "directory_url": version.directory_url,
                    }
                )
        except (OSError, json.JSONDecodeError) as e:
            log.error("Cannot merge amendments of %s: %s", key, e)
            report.failed += 1
            continue

        seen = {latest.external_id}
        canonical["previous_versions"] = []
        for entry in previous:
            if entry.get("external_id") in seen:
                continue
            seen.add(entry.get("external_id"))
            canonical["previous_versions"].append(entry)

        latest.path.write_text(serialize_record(canonical), encoding="utf-8")
        report.written += 1
        for version in superseded:
            version.path.unlink()
            report.deleted += 1
        log.info(
            "Merged %d versions of %s into %s",
            len(versions),
            "/".join(str(k) for k in key),
            latest.external_id,
        )

    log.info("%s", report)
    return report


def consolidate_dataset(dataset_dir: Path, per_period: bool = False) -> list[PassReport]:
    """Run fragment reassembly, then amendment merge."""
    return [
        reassemble_fragments(dataset_dir),
        merge_amendments(dataset_dir, per_period=per_period),
    ]
