"""EDGAR full-index listing files (master.idx) and the quarters that address them."""

import re
from dataclasses import dataclass, field
from datetime import date

from ..errors import SourceFormatError

# Anything outside printable ASCII. Index files occasionally carry stray
# control characters and non-breaking spaces in company names.
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E]+")
_DIVIDER = re.compile(r"^[-=]+$")


@dataclass(frozen=True)
class Period:
    """A calendar quarter, e.g. Period(2024, 1) for 2024 Q1."""

    year: int
    quarter: int

    def __post_init__(self) -> None:
        if self.quarter not in (1, 2, 3, 4):
            raise ValueError(f"Invalid quarter: {self.quarter}")

    def __str__(self) -> str:
        return f"{self.year}Q{self.quarter}"

    @classmethod
    def from_date(cls, d: date) -> "Period":
        return cls(d.year, (d.month - 1) // 3 + 1)

    def previous(self) -> "Period":
        if self.quarter == 1:
            return Period(self.year - 1, 4)
        return Period(self.year, self.quarter - 1)


@dataclass
class IndexFile:
    """A parsed listing file: preamble metadata plus one dict per data row."""

    meta: dict[str, str] = field(default_factory=dict)
    entries: list[dict[str, str | None]] = field(default_factory=list)


def index_file_url(period: Period, base_url: str = "https://www.sec.gov") -> str:
    """
    Build the URL of the master index file for a quarter.

    E.g. https://www.sec.gov/Archives/edgar/full-index/2024/QTR1/master.idx
    """
    return f"{base_url.rstrip('/')}/Archives/edgar/full-index/{period.year}/QTR{period.quarter}/master.idx"


def generate_periods(
    start: date | None = None,
    end: date | None = None,
    start_year: int = 2014,
) -> list[Period]:
    """
    List every quarter from start to end, oldest first.

    Args:
        start: First day to cover (default: 1 January of start_year)
        end: Last day to cover (default: today). Its own quarter is included.
        start_year: Year used when start is not given

    Returns:
        List of Period objects
    """
    end = end or date.today()
    start = start or date(start_year, 1, 1)

    first = Period.from_date(start)
    last = Period.from_date(end)

    periods = []
    for year in range(first.year, last.year + 1):
        for quarter in (1, 2, 3, 4):
            p = Period(year, quarter)
            if (year, quarter) < (first.year, first.quarter):
                continue
            if (year, quarter) > (last.year, last.quarter):
                break
            periods.append(p)
    return periods


def periods_for_last_year(today: date | None = None) -> list[Period]:
    """Return the four most recent quarters, newest first."""
    current = Period.from_date(today or date.today())
    periods = [current]
    while len(periods) < 4:
        periods.append(periods[-1].previous())
    return periods


def parse_index_file(content: str, delimiter: str = "|") -> IndexFile:
    """
    Parse an EDGAR index file.

    These files are like CSV with extra metadata at the top:

        Description:           Master Index of EDGAR Dissemination Feed
        Last Data Received:    March 31, 2024

        CIK|Company Name|Form Type|Date Filed|Filename
        --------------------------------------------------------------------------------
        1000045|NICHOLAS FINANCIAL INC|10-Q|2024-02-13|edgar/data/1000045/0000950170-24-014566.txt

    Rows whose column count differs from the header are mapped positionally:
    missing values become None and extra values are dropped.

    Raises:
        SourceFormatError: If the content is empty
    """
    if not content:
        raise SourceFormatError("Empty index file")

    index = IndexFile()
    columns: list[str] = []
    in_preamble = True

    for raw_line in content.splitlines():
        line = _NON_PRINTABLE.sub("", raw_line).strip()

        if not line:
            # First blank line ends the metadata block
            in_preamble = False
            continue

        if in_preamble:
            key, _, value = line.partition(":")
            index.meta[key.strip()] = value.strip()
            continue

        if not columns:
            columns = [c.strip() for c in line.split(delimiter)]
            continue

        if _DIVIDER.match(line):
            continue

        values = [v.strip() for v in line.split(delimiter)]
        index.entries.append(
            {col: values[i] if i < len(values) else None for i, col in enumerate(columns)}
        )

    return index
