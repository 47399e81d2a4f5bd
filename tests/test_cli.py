"""Tests for the offline CLI commands."""

import json

from click.testing import CliRunner

from thirteen_f_history.cli import cli
from thirteen_f_history.storage.dataset import DatasetSink

from conftest import make_filing, make_holding


def _seed(base_dir):
    sink = DatasetSink(base_dir / "data" / "sec13f")
    sink.write(
        make_filing(
            "000199443424000001",
            report_date="2024-03-31",
            file_number="028-12345",
            holdings=[make_holding("67066G104", 10.0)],
        ).to_dict()
    )
    sink.write(
        make_filing(
            "000199443424000002",
            report_date="2024-03-31",
            file_number="028-12345",
            amendment_type="restatement",
            holdings=[make_holding("67066G104", 12.0)],
        ).to_dict()
    )
    return sink.dataset_dir


class TestCli:
    def test_consolidate(self, tmp_path):
        dataset = _seed(tmp_path)

        result = CliRunner().invoke(cli, ["--base-dir", str(tmp_path), "consolidate"])

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in dataset.glob("*.json")) == ["000199443424000002.json"]

    def test_enrich_requires_lookups(self, tmp_path):
        _seed(tmp_path)
        result = CliRunner().invoke(cli, ["--base-dir", str(tmp_path), "enrich"])
        assert result.exit_code != 0
        assert "No lookup files" in result.output

    def test_enrich_with_lookup_files(self, tmp_path):
        dataset = _seed(tmp_path)
        cik_cusip = tmp_path / "map.csv"
        cik_cusip.write_text("cik,cusip6,cusip8\n1045810,67066G,67066G10\n")

        result = CliRunner().invoke(
            cli, ["--base-dir", str(tmp_path), "enrich", "--cik-cusip", str(cik_cusip)]
        )

        assert result.exit_code == 0, result.output
        record = json.loads((dataset / "000199443424000001.json").read_text())
        assert record["holdings"][0]["cik"] == "0001045810"

    def test_postprocess(self, tmp_path):
        _seed(tmp_path)

        result = CliRunner().invoke(cli, ["--base-dir", str(tmp_path), "postprocess"])

        assert result.exit_code == 0, result.output
        exports = tmp_path / "data" / "exports"
        assert sorted(p.name for p in exports.iterdir()) == [
            "filings.csv",
            "funds.csv",
            "holdings.csv",
            "quarterly_positions.csv",
            "report_dates.csv",
        ]

    def test_missing_contact_email(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SEC_CONTACT_EMAIL")
        result = CliRunner().invoke(cli, ["--base-dir", str(tmp_path), "consolidate"])
        assert result.exit_code != 0
        assert "SEC_CONTACT_EMAIL" in result.output
