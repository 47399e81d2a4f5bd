"""13F filing identifiers, and normalising listing rows into them."""

import logging
import re
from dataclasses import asdict, dataclass, field, fields
from typing import TYPE_CHECKING

from ..errors import SourceFormatError
from .documents import VisitedDocument
from .index import IndexFile
from .parser import Holding, OtherManager

if TYPE_CHECKING:
    from .feed import FeedEntry

log = logging.getLogger(__name__)

THIRTEEN_F_FORM_TYPES = ("13F-HR", "13F-HR/A")


@dataclass
class PreviousVersion:
    """A superseded amendment predecessor of a consolidated filing."""

    external_id: str
    report_date: str | None
    directory_url: str


@dataclass
class Filing:
    """One 13F submission, as accumulated across its documents."""

    external_id: str
    company_name: str
    cik: str
    form_type: str
    date_filed: str
    directory_url: str
    full_submission_url: str
    index_page_url: str

    # Primary document
    report_date: str | None = None
    street1: str | None = None
    street2: str | None = None
    city: str | None = None
    state_or_country: str | None = None
    zip_code: str | None = None
    other_included_managers_count: int | None = None
    holdings_count_reported: int | None = None
    holdings_value_reported: float | None = None
    confidential_omitted: bool | None = None
    report_type: str | None = None
    amendment_type: str | None = None
    amendment_number: int | None = None
    file_number: str | None = None
    other_managers: list[OtherManager] = field(default_factory=list)

    # Information table
    holdings: list[Holding] | None = None

    xml_docs: list[VisitedDocument] = field(default_factory=list)

    # Added by consolidation and enrichment
    previous_versions: list[PreviousVersion] = field(default_factory=list)
    cusip8: str | None = None
    company_names: list[str] | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["xml_docs"] = [d.to_dict() for d in self.xml_docs]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Filing":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        values["other_managers"] = [OtherManager(**m) for m in data.get("other_managers") or []]
        if data.get("holdings") is not None:
            values["holdings"] = [Holding.from_dict(h) for h in data["holdings"]]
        values["xml_docs"] = [VisitedDocument.from_dict(d) for d in data.get("xml_docs") or []]
        values["previous_versions"] = [
            PreviousVersion(**v) for v in data.get("previous_versions") or []
        ]
        return cls(**values)


def pad_cik(cik: str | int) -> str:
    """Normalize CIK to 10 digits with leading zeros.

    Accepts "1000045", 1000045 and float-formatted "828119.0".
    """
    text = str(cik).strip()
    if re.fullmatch(r"\d+\.0*", text):
        text = text.split(".")[0]
    if not text.isdigit():
        raise ValueError(f"Invalid CIK: {cik!r}")
    return text.lstrip("0").zfill(10)


def format_accession_number(external_id: str) -> str:
    """Format `000199443424000004` as `0001994434-24-000004`."""
    padded = external_id.zfill(18)
    return f"{padded[:10]}-{padded[10:12]}-{padded[12:]}"


def index_page_url(external_id: str, directory_url: str) -> str:
    """
    Build the human-readable index page URL of a filing.

    E.g. .../data/1994434/000199443424000004/0001994434-24-000004-index.html
    """
    return f"{directory_url.rstrip('/')}/{format_accession_number(external_id)}-index.html"


def filing_from_index_row(row: dict, base_url: str = "https://www.sec.gov") -> Filing | None:
    """
    Turn a master index row into a Filing shell.

    Returns:
        Filing, or None if the row is not a 13F form type

    Raises:
        SourceFormatError: If an accepted row lacks a CIK or filename
    """
    form_type = row.get("Form Type") or ""
    if form_type not in THIRTEEN_F_FORM_TYPES:
        return None

    filename = row.get("Filename")
    if not filename:
        raise SourceFormatError(f"Index row has no filename: {row}")
    try:
        cik = pad_cik(row.get("CIK") or "")
    except ValueError as e:
        raise SourceFormatError(str(e)) from e

    # edgar/data/1000045/0000950170-24-014566.txt
    #   -> .../Archives/edgar/data/1000045/000095017024014566
    base = base_url.rstrip("/")
    full_submission_url = f"{base}/Archives/{filename}"
    directory_url = f"{base}/Archives/{filename.removesuffix('.txt').replace('-', '')}"
    external_id = directory_url.rsplit("/", 1)[-1]

    return Filing(
        external_id=external_id,
        company_name=row.get("Company Name") or "",
        cik=cik,
        form_type=form_type,
        date_filed=row.get("Date Filed") or "",
        directory_url=directory_url,
        full_submission_url=full_submission_url,
        index_page_url=index_page_url(external_id, directory_url),
    )


def filing_from_feed_entry(entry: "FeedEntry") -> Filing | None:
    """Turn a recent-filings feed entry into a Filing shell, or None if not 13F."""
    if entry.form_type not in THIRTEEN_F_FORM_TYPES:
        return None

    return Filing(
        external_id=entry.external_id,
        company_name=entry.company_name,
        cik=entry.cik,
        form_type=entry.form_type,
        date_filed=entry.updated.date().isoformat(),
        directory_url=entry.directory_url,
        full_submission_url=entry.full_submission_url,
        index_page_url=index_page_url(entry.external_id, entry.directory_url),
    )


def filings_from_index(index: IndexFile, base_url: str = "https://www.sec.gov") -> list[Filing]:
    """Normalise every 13F row of an index file, skipping malformed rows."""
    filings = []
    skipped = 0
    for row in index.entries:
        try:
            filing = filing_from_index_row(row, base_url)
        except SourceFormatError as e:
            log.warning("Skipping index row: %s", e)
            skipped += 1
            continue
        if filing is not None:
            filings.append(filing)

    log.info(
        "Found %d 13F filings among %d index rows (%d malformed)",
        len(filings),
        len(index.entries),
        skipped,
    )
    return filings
