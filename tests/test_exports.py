"""Tests for flat table exports."""

import json

import pandas as pd

from thirteen_f_history.edgar.documents import DocumentType, VisitedDocument
from thirteen_f_history.edgar.parser import OtherManager
from thirteen_f_history.storage import exports
from thirteen_f_history.storage.dataset import DatasetSink
from thirteen_f_history.storage.exports import (
    export_tables,
    export_timeseries,
    filings_to_dataframe,
    funds_to_dataframe,
    holdings_to_dataframe,
    iter_filings,
)

from conftest import make_filing, make_holding


class TestDataFrames:
    def test_holdings_value_fraction_ignores_principal(self):
        filing = make_filing(
            holdings=[
                make_holding("A", 300.0),
                make_holding("B", 100.0),
                make_holding("C", 1000.0, amount_type="prn"),
            ]
        )

        df = holdings_to_dataframe([filing])

        assert list(df["value_shares_fraction"]) == [0.75, 0.25, 2.5]
        assert list(df["_pk"]) == [
            "000199443424000004__A",
            "000199443424000004__B",
            "000199443424000004__C",
        ]
        assert set(df["fund_cik"]) == {"0001994434"}
        assert set(df["filing_external_id"]) == {"000199443424000004"}

    def test_holdings_without_share_value(self):
        filing = make_filing(holdings=[make_holding("A", 0.0)])
        df = holdings_to_dataframe([filing])
        assert df["value_shares_fraction"].isna().all()

    def test_filings_serialise_nested_fields(self):
        filing = make_filing(
            other_managers=[OtherManager(1, "028-99999", "Other Adviser LP")],
            xml_docs=[VisitedDocument("https://x/a.xml", DocumentType.INFO_TABLE, "<big/>")],
        )

        row = filings_to_dataframe([filing]).iloc[0]

        assert json.loads(row["xml_docs"]) == [{"url": "https://x/a.xml", "type": "info_table"}]
        assert json.loads(row["other_managers"])[0]["name"] == "Other Adviser LP"
        assert row["fund_company_name"] == "Example Capital LLC"

    def test_one_fund_row_per_cik(self):
        filings = [
            make_filing("1", city="old town"),
            make_filing("2", city="new town"),
            make_filing("3", cik="0000000007"),
        ]

        df = funds_to_dataframe(filings)

        assert len(df) == 2
        assert df.loc[df["cik"] == "0001994434", "city"].item() == "new town"


class TestExportFiles:
    def _dataset(self, tmp_path):
        dataset = tmp_path / "dataset"
        sink = DatasetSink(dataset)
        sink.write(make_filing("1", report_date="2024-03-31", holdings=[make_holding("A", 10.0)]).to_dict())
        sink.write(make_filing("2", report_date="2024-06-30", holdings=[make_holding("A", 15.0)]).to_dict())
        return dataset

    def test_export_tables_csv(self, tmp_path):
        paths = export_tables(self._dataset(tmp_path), tmp_path / "out")

        assert set(paths) == {"funds", "filings", "holdings"}
        holdings = pd.read_csv(paths["holdings"], dtype={"fund_cik": str})
        assert len(holdings) == 2
        assert set(holdings["fund_cik"]) == {"0001994434"}

    def test_document_content_is_dropped_on_read(self, tmp_path):
        doc = VisitedDocument("https://x/a.xml", DocumentType.INFO_TABLE, "<big/>")
        DatasetSink(tmp_path).write(make_filing(xml_docs=[doc]).to_dict())

        (filing,) = iter_filings(tmp_path)
        assert filing.xml_docs[0].content == ""
        assert filing.xml_docs[0].url == "https://x/a.xml"

        (filing,) = iter_filings(tmp_path, with_content=True)
        assert filing.xml_docs[0].content == "<big/>"

    def test_each_table_streams_the_dataset(self, tmp_path, monkeypatch):
        passes = []
        real_iter = exports.iter_filings

        def tracking_iter(dataset_dir, with_content=False):
            passes.append(dataset_dir)
            return real_iter(dataset_dir, with_content)

        monkeypatch.setattr(exports, "iter_filings", tracking_iter)

        paths = export_tables(self._dataset(tmp_path), tmp_path / "out")

        assert len(passes) == 3
        assert pd.read_csv(paths["funds"]).shape[0] == 1

    def test_export_timeseries_csv(self, tmp_path):
        paths = export_timeseries(self._dataset(tmp_path), tmp_path / "out")

        dates = pd.read_csv(paths["report_dates"])
        assert list(dates["report_date"]) == ["2024-03-31", "2024-06-30"]

        positions = pd.read_csv(paths["quarterly_positions"])
        assert list(positions["value"]) == [10.0, 15.0]
        assert list(positions["value_delta"]) == [0.0, 5.0]
