"""
Quarter-over-quarter position history per (fund, security).

The quarter horizon is the sorted set of report dates actually observed
across all filings. Each (fund CIK, CUSIP) group is walked along that
horizon, carrying the previously emitted entry:

    observed  previous entry        outcome
    --------  --------------------  ---------------------------------------
    no        none                  zero entry, zero delta (not yet held)
    no        nonzero value         zero entry, delta = -previous (exited)
    no        zero value            nothing (already closed)
    yes       none                  observed entry, zero delta (first seen)
    yes       any                   observed entry, delta = value - previous

So a position first seen on the first horizon date starts with a zero delta,
while one first seen later enters with its full value as the delta, measured
against the zero entries that precede it.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable, Iterator

from ..edgar.filings import Filing

log = logging.getLogger(__name__)


class PositionChange(str, Enum):
    CARRY_FORWARD_ZERO = "carry_forward_zero"
    EXIT = "exit"
    ENTER = "enter"
    CONTINUE = "continue"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class Observation:
    """A holding as reported for one report date."""

    value: float
    shares: float


@dataclass(frozen=True)
class QuarterlyPosition:
    fund_cik: str
    cusip: str
    report_date: str
    value: float
    value_delta: float
    shares: float
    shares_delta: float
    change: PositionChange

    def to_dict(self) -> dict:
        data = asdict(self)
        data["change"] = self.change.value
        return data


def classify_step(has_current: bool, previous: QuarterlyPosition | None) -> PositionChange:
    """Decide what to emit for one horizon date."""
    if has_current:
        return PositionChange.ENTER if previous is None else PositionChange.CONTINUE
    if previous is None:
        return PositionChange.CARRY_FORWARD_ZERO
    if previous.value:
        return PositionChange.EXIT
    return PositionChange.SUPPRESS


def report_date_horizon(filings: Iterable[Filing]) -> list[str]:
    """Sorted distinct report dates across all filings."""
    return sorted({f.report_date for f in filings if f.report_date})


def reconstruct_group(
    fund_cik: str,
    cusip: str,
    observations: dict[str, Observation],
    horizon: list[str],
) -> list[QuarterlyPosition]:
    """
    Build the position series of one (fund, security) group.

    Args:
        fund_cik: Fund CIK
        cusip: Security CUSIP
        observations: Report date -> observation
        horizon: Sorted report dates to walk

    Returns:
        Emitted entries, oldest first. Dates after a closed position are
        skipped until the position reappears.
    """
    series: list[QuarterlyPosition] = []
    previous: QuarterlyPosition | None = None

    for report_date in horizon:
        current = observations.get(report_date)
        change = classify_step(current is not None, previous)

        if change == PositionChange.SUPPRESS:
            continue

        if change == PositionChange.CARRY_FORWARD_ZERO:
            value, value_delta, shares, shares_delta = 0.0, 0.0, 0.0, 0.0
        elif change == PositionChange.EXIT:
            value, shares = 0.0, 0.0
            value_delta, shares_delta = -previous.value, -previous.shares
        elif change == PositionChange.ENTER:
            value, shares = current.value, current.shares
            value_delta, shares_delta = 0.0, 0.0
        else:
            value, shares = current.value, current.shares
            value_delta, shares_delta = value - previous.value, shares - previous.shares

        entry = QuarterlyPosition(
            fund_cik=fund_cik,
            cusip=cusip,
            report_date=report_date,
            value=value,
            value_delta=value_delta,
            shares=shares,
            shares_delta=shares_delta,
            change=change,
        )
        series.append(entry)
        previous = entry

    return series


def group_observations(
    filings: Iterable[Filing],
) -> tuple[list[str], dict[tuple[str, str], dict[str, Observation]]]:
    """
    Index holdings by (fund CIK, CUSIP) and report date, in a single pass.

    When one (fund, CUSIP, date) is reported more than once, within a
    filing or across filings, the last row read wins.

    Returns:
        The report date horizon and the per-group observations
    """
    dates: set[str] = set()
    groups: dict[tuple[str, str], dict[str, Observation]] = defaultdict(dict)
    for filing in filings:
        if not filing.report_date:
            continue
        dates.add(filing.report_date)
        if not filing.holdings:
            continue

        for holding in filing.holdings:
            key = (filing.cik, holding.cusip)
            if filing.report_date in groups[key]:
                log.debug("Replacing observation of %s at %s", key, filing.report_date)
            groups[key][filing.report_date] = Observation(
                value=holding.value, shares=holding.shares_or_principal_amount
            )
    return sorted(dates), groups


def reconstruct_positions(filings: Iterable[Filing]) -> Iterator[QuarterlyPosition]:
    """
    Yield the quarterly position series of every (fund, security) group.

    Groups come out in (fund CIK, CUSIP) order.
    """
    horizon, groups = group_observations(filings)
    log.info("Reconstructing %d groups over %d report dates", len(groups), len(horizon))

    for fund_cik, cusip in sorted(groups):
        yield from reconstruct_group(fund_cik, cusip, groups[(fund_cik, cusip)], horizon)
