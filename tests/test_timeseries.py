"""Tests for quarterly position reconstruction."""

from thirteen_f_history.storage.timeseries import (
    Observation,
    PositionChange,
    QuarterlyPosition,
    classify_step,
    reconstruct_group,
    reconstruct_positions,
    report_date_horizon,
)

from conftest import make_filing, make_holding

Q0, Q1, Q2, Q3, Q4, Q5 = (
    "2023-12-31",
    "2024-03-31",
    "2024-06-30",
    "2024-09-30",
    "2024-12-31",
    "2025-03-31",
)


def _series(positions) -> list[tuple]:
    return [(p.report_date, p.value, p.value_delta) for p in positions]


def _position(value: float) -> QuarterlyPosition:
    return QuarterlyPosition("1", "X", Q1, value, 0.0, 0.0, 0.0, PositionChange.CONTINUE)


class TestClassifyStep:
    def test_all_outcomes(self):
        assert classify_step(False, None) == PositionChange.CARRY_FORWARD_ZERO
        assert classify_step(False, _position(100.0)) == PositionChange.EXIT
        assert classify_step(False, _position(0.0)) == PositionChange.SUPPRESS
        assert classify_step(True, None) == PositionChange.ENTER
        assert classify_step(True, _position(0.0)) == PositionChange.CONTINUE
        assert classify_step(True, _position(100.0)) == PositionChange.CONTINUE


class TestReconstructGroup:
    def test_gap_on_first_horizon_date(self):
        observations = {Q1: Observation(100.0, 10.0), Q3: Observation(100.0, 10.0)}

        series = reconstruct_group("1", "X", observations, [Q1, Q2, Q3, Q4, Q5])

        # First sighting on the first horizon date has no baseline
        assert _series(series) == [
            (Q1, 100.0, 0.0),
            (Q2, 0.0, -100.0),
            (Q3, 100.0, 100.0),
            (Q4, 0.0, -100.0),
        ]

    def test_gap_after_earlier_horizon_date(self):
        observations = {Q1: Observation(100.0, 10.0), Q3: Observation(100.0, 10.0)}

        series = reconstruct_group("1", "X", observations, [Q0, Q1, Q2, Q3, Q4, Q5])

        # The zero entry at Q0 is the baseline, so Q1 enters with +100
        assert _series(series) == [
            (Q0, 0.0, 0.0),
            (Q1, 100.0, 100.0),
            (Q2, 0.0, -100.0),
            (Q3, 100.0, 100.0),
            (Q4, 0.0, -100.0),
        ]
        assert [p.change for p in series] == [
            PositionChange.CARRY_FORWARD_ZERO,
            PositionChange.CONTINUE,
            PositionChange.EXIT,
            PositionChange.CONTINUE,
            PositionChange.EXIT,
        ]

    def test_share_deltas(self):
        observations = {Q1: Observation(100.0, 10.0), Q2: Observation(150.0, 12.0)}

        series = reconstruct_group("1", "X", observations, [Q1, Q2, Q3])

        assert [(p.shares, p.shares_delta) for p in series] == [
            (10.0, 0.0),
            (12.0, 2.0),
            (0.0, -12.0),
        ]

    def test_late_first_sighting(self):
        series = reconstruct_group("1", "X", {Q3: Observation(50.0, 5.0)}, [Q1, Q2, Q3])

        # One zero entry opens the series; the following empty date is suppressed
        assert _series(series) == [(Q1, 0.0, 0.0), (Q3, 50.0, 50.0)]

    def test_zero_value_observation_then_absence(self):
        series = reconstruct_group("1", "X", {Q1: Observation(0.0, 0.0)}, [Q1, Q2])
        assert _series(series) == [(Q1, 0.0, 0.0)]


class TestReconstructPositions:
    def test_horizon_spans_all_filings(self):
        filings = [
            make_filing("1", report_date=Q2),
            make_filing("2", report_date=Q1),
            make_filing("3", report_date=Q2),
            make_filing("4"),
        ]
        assert report_date_horizon(filings) == [Q1, Q2]

    def test_groups_in_order(self):
        filings = [
            make_filing("1", cik="0000000002", report_date=Q1, holdings=[make_holding("B", 10.0)]),
            make_filing("2", cik="0000000001", report_date=Q1, holdings=[make_holding("A", 20.0)]),
            make_filing("3", cik="0000000001", report_date=Q2, holdings=[make_holding("A", 25.0)]),
        ]

        positions = list(reconstruct_positions(filings))

        assert [(p.fund_cik, p.cusip, p.report_date, p.value_delta) for p in positions] == [
            ("0000000001", "A", Q1, 0.0),
            ("0000000001", "A", Q2, 5.0),
            ("0000000002", "B", Q1, 0.0),
            ("0000000002", "B", Q2, -10.0),
        ]

    def test_duplicate_cusip_rows_in_one_filing_keep_the_last(self):
        filings = [
            make_filing(
                "1",
                report_date=Q1,
                holdings=[make_holding("A", 10.0, 1.0), make_holding("A", 5.0, 2.0)],
            ),
        ]
        (position,) = reconstruct_positions(filings)
        assert (position.value, position.shares) == (5.0, 2.0)

    def test_to_dict(self):
        data = _position(1.0).to_dict()
        assert data["change"] == "continue"
        assert data["fund_cik"] == "1"
