"""Export the dataset to flat CSV and Parquet tables."""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Iterable, Iterator

import pandas as pd

from ..edgar.filings import Filing
from .dataset import iter_records
from .timeseries import QuarterlyPosition, reconstruct_positions, report_date_horizon

log = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "parquet")

FUND_COLUMNS = [
    "company_name",
    "company_names",
    "cik",
    "cusip8",
    "street1",
    "street2",
    "city",
    "state_or_country",
    "zip_code",
]

FILING_COLUMNS = [
    "external_id",
    "form_type",
    "date_filed",
    "full_submission_url",
    "directory_url",
    "index_page_url",
    "xml_docs",
    "report_date",
    "other_included_managers_count",
    "holdings_count_reported",
    "holdings_value_reported",
    "confidential_omitted",
    "report_type",
    "amendment_type",
    "amendment_number",
    "file_number",
    "other_managers",
    "fund_cik",
    "fund_company_name",
]

HOLDING_COLUMNS = [
    "cusip",
    "cusip8",
    "cik",
    "issuer_name",
    "class_title",
    "value",
    "shares_or_principal_amount",
    "amount_type",
    "option_type",
    "investment_discretion",
    "other_manager",
    "voting_authority_sole",
    "voting_authority_shared",
    "voting_authority_none",
    "value_shares_fraction",
    "fund_cik",
    "fund_company_name",
    "filing_external_id",
    "_pk",
]

POSITION_COLUMNS = [
    "fund_cik",
    "cusip",
    "report_date",
    "value",
    "value_delta",
    "shares",
    "shares_delta",
    "change",
]


def iter_filings(dataset_dir: Path, with_content: bool = False) -> Iterator[Filing]:
    """
    Stream whole filing records of a dataset directory.

    The raw XML of visited documents is dropped as each record is read,
    unless with_content is set.
    """
    for path, record in iter_records(dataset_dir):
        if not with_content:
            for doc in record.get("xml_docs") or []:
                if isinstance(doc, dict):
                    doc.pop("content", None)
        try:
            yield Filing.from_dict(record)
        except (TypeError, ValueError, KeyError) as e:
            log.warning("Skipping %s: %s", path.name, e)


def _share_value_total(filing: Filing) -> float:
    """Total value of share (not principal) positions in a filing."""
    return sum(h.value for h in filing.holdings or [] if h.amount_type.strip().lower() == "sh")


def funds_to_dataframe(filings: Iterable[Filing]) -> pd.DataFrame:
    """One row per fund CIK, from the latest filing seen for it."""
    rows: dict[str, dict] = {}
    for f in filings:
        rows[f.cik] = {
            "company_name": f.company_name,
            "company_names": json.dumps(f.company_names or []),
            "cik": f.cik,
            "cusip8": f.cusip8,
            "street1": f.street1,
            "street2": f.street2,
            "city": f.city,
            "state_or_country": f.state_or_country,
            "zip_code": f.zip_code,
        }
    return pd.DataFrame(list(rows.values()), columns=FUND_COLUMNS)


def filings_to_dataframe(filings: Iterable[Filing]) -> pd.DataFrame:
    """One row per filing."""
    return pd.DataFrame(
        [
            {
                "external_id": f.external_id,
                "form_type": f.form_type,
                "date_filed": f.date_filed,
                "full_submission_url": f.full_submission_url,
                "directory_url": f.directory_url,
                "index_page_url": f.index_page_url,
                "xml_docs": json.dumps([d.to_dict(include_content=False) for d in f.xml_docs]),
                "report_date": f.report_date,
                "other_included_managers_count": f.other_included_managers_count,
                "holdings_count_reported": f.holdings_count_reported,
                "holdings_value_reported": f.holdings_value_reported,
                "confidential_omitted": f.confidential_omitted,
                "report_type": f.report_type,
                "amendment_type": f.amendment_type,
                "amendment_number": f.amendment_number,
                "file_number": f.file_number,
                "other_managers": json.dumps([asdict(m) for m in f.other_managers]),
                "fund_cik": f.cik,
                "fund_company_name": f.company_name,
            }
            for f in filings
        ],
        columns=FILING_COLUMNS,
    )


def holdings_to_dataframe(filings: Iterable[Filing]) -> pd.DataFrame:
    """
    One row per holding, tagged with its fund and filing.

    value_shares_fraction is the holding's value over the filing's total
    share-position value, rounded to 4 places; None when that total is 0.
    """
    rows = []
    for f in filings:
        total = _share_value_total(f)
        for h in f.holdings or []:
            row = h.to_dict()
            row["value_shares_fraction"] = round(h.value / total, 4) if total else None
            row["fund_cik"] = f.cik
            row["fund_company_name"] = f.company_name
            row["filing_external_id"] = f.external_id
            row["_pk"] = f"{f.external_id}__{h.cusip}"
            rows.append(row)
    return pd.DataFrame(rows, columns=HOLDING_COLUMNS)


def report_dates_to_dataframe(horizon: list[str]) -> pd.DataFrame:
    return pd.DataFrame({"report_date": horizon})


def positions_to_dataframe(positions: Iterable[QuarterlyPosition]) -> pd.DataFrame:
    return pd.DataFrame([p.to_dict() for p in positions], columns=POSITION_COLUMNS)


def write_table(df: pd.DataFrame, output_dir: Path, name: str, fmt: str = "csv") -> Path:
    """
    Write a table as CSV or Parquet.

    Args:
        df: Table to write
        output_dir: Directory to write into
        name: Table name, used as the file stem
        fmt: "csv" or "parquet"

    Returns:
        Path to the created file
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{name}.{fmt}"
    if fmt == "csv":
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    log.info("Wrote %d rows to %s", len(df), path)
    return path


def export_tables(dataset_dir: Path, output_dir: Path, fmt: str = "csv") -> dict[str, Path]:
    """
    Export funds, filings and holdings tables.

    Each table is built in its own pass over the dataset, so only one record
    is held at a time besides the table rows.

    Returns:
        Table name -> written path
    """
    builders = {
        "funds": funds_to_dataframe,
        "filings": filings_to_dataframe,
        "holdings": holdings_to_dataframe,
    }
    return {
        name: write_table(build(iter_filings(dataset_dir)), output_dir, name, fmt)
        for name, build in builders.items()
    }


def export_timeseries(dataset_dir: Path, output_dir: Path, fmt: str = "csv") -> dict[str, Path]:
    """
    Export the report date horizon and the quarterly positions.

    Returns:
        Table name -> written path
    """
    horizon = report_date_horizon(iter_filings(dataset_dir))
    positions = positions_to_dataframe(reconstruct_positions(iter_filings(dataset_dir)))
    return {
        "report_dates": write_table(
            report_dates_to_dataframe(horizon), output_dir, "report_dates", fmt
        ),
        "quarterly_positions": write_table(positions, output_dir, "quarterly_positions", fmt),
    }
