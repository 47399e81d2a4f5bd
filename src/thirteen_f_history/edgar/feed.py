"""EDGAR "latest filings" Atom feed: parsing and pagination."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator

from lxml import etree

from ..errors import SourceFormatError
from .filings import format_accession_number, pad_cik
from .parser import parse_xml

log = logging.getLogger(__name__)

# 13F-HR/A - Allianz Asset Management GmbH (0001535323) (Filer)
TITLE_PATTERN = re.compile(r"^(?P<form_type>\S+) - (?P<company_name>.+?) \((?P<cik>\d+)\)")


@dataclass
class FeedEntry:
    """One filing announced in the feed."""

    title: str
    link: str
    updated: datetime
    form_type: str
    company_name: str
    cik: str
    directory_url: str
    external_id: str
    full_submission_url: str


@dataclass
class FeedPage:
    entries: list[FeedEntry] = field(default_factory=list)
    raw_count: int = 0  # entries on the page, including skipped ones


def _parse_timestamp(text: str) -> datetime:
    # Already in ISO format '2024-05-24T17:41:21-04:00'
    ts = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_feed_entry(entry: etree._Element) -> FeedEntry:
    """
    Parse a single Atom entry.

    Raises:
        SourceFormatError: If the entry lacks a link, timestamp or form type
    """
    title = (entry.findtext("title") or "").strip()

    link_el = entry.find("link")
    link = (link_el.get("href") or "").strip() if link_el is not None else ""
    if not link or "/" not in link:
        raise SourceFormatError(f"Failed to find directory URL for entry {title!r}")

    try:
        updated = _parse_timestamp(entry.findtext("updated") or "")
    except ValueError as e:
        raise SourceFormatError(f"Invalid timestamp for entry {title!r}: {e}") from e

    form_type = next(
        (c.get("term") for c in entry.iter("category") if c.get("label") == "form type"),
        None,
    )
    if not form_type:
        raise SourceFormatError(f"Failed to find form type for entry {title!r}")

    # https://www.sec.gov/Archives/edgar/data/1994434/000199443424000004/0001994434-24-000004-index.htm
    #   -> https://www.sec.gov/Archives/edgar/data/1994434/000199443424000004
    directory_url = link.rsplit("/", 1)[0]
    parent_url, _, external_id = directory_url.rpartition("/")
    if not external_id.isdigit():
        raise SourceFormatError(f"Unexpected filing directory URL {directory_url!r}")

    match = TITLE_PATTERN.match(title)
    company_name = match.group("company_name") if match else ""
    try:
        cik = pad_cik(match.group("cik") if match else parent_url.rsplit("/", 1)[-1])
    except ValueError as e:
        raise SourceFormatError(f"No CIK for entry {title!r}") from e

    return FeedEntry(
        title=title,
        link=link,
        updated=updated,
        form_type=form_type,
        company_name=company_name,
        cik=cik,
        directory_url=directory_url,
        external_id=external_id,
        full_submission_url=f"{parent_url}/{format_accession_number(external_id)}.txt",
    )


def parse_feed_page(content: bytes | str) -> FeedPage:
    """
    Parse one page of the feed. Malformed entries are logged and skipped.

    Example entry:

        <entry>
          <title>13F-HR/A - WFA Asset Management Corp (0001994434) (Filer)</title>
          <link rel="alternate" type="text/html" href="https://www.sec.gov/Archives/edgar/data/1994434/000199443424000004/0001994434-24-000004-index.htm"/>
          <updated>2024-05-24T17:22:18-04:00</updated>
          <category scheme="https://www.sec.gov/" label="form type" term="13F-HR/A"/>
        </entry>
    """
    try:
        root = parse_xml(content)
    except etree.XMLSyntaxError as e:
        raise SourceFormatError(f"Invalid feed page: {e}") from e

    page = FeedPage()
    for el in root.iter("entry"):
        page.raw_count += 1
        try:
            page.entries.append(parse_feed_entry(el))
        except SourceFormatError as e:
            log.warning("Skipping feed entry: %s", e)
    return page


def iter_recent_filings(
    fetch_page: Callable[[int, int], bytes],
    filed_since: datetime,
    per_page: int = 100,
    max_pages: int = 100,
) -> Iterator[FeedEntry]:
    """
    Walk the paginated feed and yield entries filed at or after filed_since.

    Args:
        fetch_page: Called with (offset, count), returns the raw feed page
        filed_since: Cutoff; naive datetimes are treated as UTC
        per_page: Page size to request
        max_pages: Safety bound on the number of pages

    Stops after a page shorter than per_page, or after max_pages pages.
    """
    if filed_since.tzinfo is None:
        filed_since = filed_since.replace(tzinfo=timezone.utc)

    offset = 0
    for page_number in range(max_pages):
        page = parse_feed_page(fetch_page(offset, per_page))
        log.info("Feed page %d (offset %d): %d entries", page_number + 1, offset, page.raw_count)

        for entry in page.entries:
            if entry.updated < filed_since:
                continue
            yield entry

        if page.raw_count < per_page:
            break
        offset += per_page
