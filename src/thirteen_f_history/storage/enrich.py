"""Cross-reference enrichment: CUSIP-8, owning CIK and historical company names."""

import csv
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from ..crawl.writer import serialize_record
from ..edgar.filings import Filing, pad_cik
from .dataset import PassReport, iter_records

log = logging.getLogger(__name__)


def cusip9_to_cusip8(cusip: str) -> str:
    """Drop the trailing check digit of a 9-character CUSIP."""
    return cusip[:-1] if len(cusip) == 9 else cusip


def parse_company_names(lines: Iterable[str]) -> dict[str, list[str]]:
    """
    Parse `NAME:CIK:` lines into CIK -> names.

    Names may themselves contain colons, so each line is read from the end:

        !J INC:0001438823:
        A: B CAPITAL LLC:0001234567:

    A CIK that filed under several names maps to all of them, in file order.
    Lines that do not end in `:<digits>:` are logged and skipped.
    """
    cik_to_names: dict[str, list[str]] = {}
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue

        head, sep, tail = line.rpartition(":")
        name, sep2, cik = head.rpartition(":")
        cik = cik.strip()
        if not sep or not sep2 or tail.strip() or not cik.isdigit():
            log.warning("Skipping malformed company name line %d: %r", lineno, line)
            continue

        names = cik_to_names.setdefault(pad_cik(cik), [])
        name = name.strip()
        if name not in names:
            names.append(name)
    return cik_to_names


def parse_cik_cusip_map(rows: Iterable[dict]) -> tuple[dict[str, str], dict[str, str]]:
    """
    Build CUSIP-8 -> CIK and CIK -> CUSIP-8 maps from `cik,cusip6,cusip8` rows.

    CIKs come as floats in some exports ("828119.0") and are normalised.
    """
    cusip8_to_cik: dict[str, str] = {}
    cik_to_cusip8: dict[str, str] = {}
    for row in rows:
        cusip8 = (row.get("cusip8") or "").strip().upper()
        try:
            cik = pad_cik(row.get("cik") or "")
        except ValueError:
            log.warning("Skipping CIK-CUSIP row with invalid CIK: %s", row)
            continue
        if not cusip8:
            continue
        cusip8_to_cik[cusip8] = cik
        cik_to_cusip8[cik] = cusip8
    return cusip8_to_cik, cik_to_cusip8


@dataclass(frozen=True)
class LookupTables:
    """Read-only reference maps, loaded once per run."""

    cusip8_to_cik: Mapping[str, str] = field(default_factory=dict)
    cik_to_cusip8: Mapping[str, str] = field(default_factory=dict)
    cik_to_names: Mapping[str, list[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        cusip8_to_cik: dict[str, str],
        cik_to_cusip8: dict[str, str],
        cik_to_names: dict[str, list[str]],
    ) -> "LookupTables":
        return cls(
            MappingProxyType(dict(cusip8_to_cik)),
            MappingProxyType(dict(cik_to_cusip8)),
            MappingProxyType({k: list(v) for k, v in cik_to_names.items()}),
        )


def load_lookup_tables(cik_cusip_path: Path | None, cik_names_path: Path | None) -> LookupTables:
    """
    Load the lookup tables from their reference files.

    Args:
        cik_cusip_path: CSV with `cik,cusip6,cusip8` columns, or None
        cik_names_path: `NAME:CIK:` text file (cik-lookup-data.txt), or None
    """
    cusip8_to_cik: dict[str, str] = {}
    cik_to_cusip8: dict[str, str] = {}
    cik_to_names: dict[str, list[str]] = {}

    if cik_cusip_path is not None:
        with open(cik_cusip_path, newline="", encoding="utf-8") as f:
            cusip8_to_cik, cik_to_cusip8 = parse_cik_cusip_map(csv.DictReader(f))
        log.info("Loaded %d CUSIP-8 to CIK associations", len(cusip8_to_cik))

    if cik_names_path is not None:
        # The SEC file is Latin-1
        with open(cik_names_path, encoding="latin-1") as f:
            cik_to_names = parse_company_names(f)
        log.info("Loaded company names for %d CIKs", len(cik_to_names))

    return LookupTables.build(cusip8_to_cik, cik_to_cusip8, cik_to_names)


def enrich_record(filing: Filing, tables: LookupTables) -> Filing:
    """
    Attach CUSIP-8 and company names to a filing and its holdings.

    Holdings whose CUSIP-8 is unknown keep a null CIK; no row is dropped.
    """
    fund_cik = filing.cik
    names = tables.cik_to_names.get(fund_cik)

    holdings = None
    if filing.holdings is not None:
        holdings = []
        for holding in filing.holdings:
            cusip8 = cusip9_to_cusip8(holding.cusip)
            cik = tables.cusip8_to_cik.get(cusip8)
            holding_names = tables.cik_to_names.get(cik) if cik else None
            holdings.append(
                replace(
                    holding,
                    cusip8=cusip8,
                    cik=cik,
                    company_names=list(holding_names) if holding_names else None,
                )
            )

    return replace(
        filing,
        cusip8=tables.cik_to_cusip8.get(fund_cik),
        company_names=list(names) if names else None,
        holdings=holdings,
    )


def enrich_dataset(dataset_dir: Path, tables: LookupTables) -> PassReport:
    """Rewrite every whole record of a dataset with enrichment fields."""
    report = PassReport("enrich")
    for path, record in iter_records(dataset_dir):
        report.groups += 1
        try:
            filing = Filing.from_dict(record)
        except (TypeError, ValueError, KeyError) as e:
            log.warning("Skipping %s: %s", path.name, e)
            report.failed += 1
            continue

        enriched = enrich_record(filing, tables)
        path.write_text(serialize_record(enriched.to_dict()), encoding="utf-8")
        report.written += 1

    log.info("%s", report)
    return report
