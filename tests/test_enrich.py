"""Tests for cross-reference enrichment."""

import json

import pytest

from thirteen_f_history.edgar.filings import Filing
from thirteen_f_history.storage.dataset import DatasetSink
from thirteen_f_history.storage.enrich import (
    LookupTables,
    cusip9_to_cusip8,
    enrich_dataset,
    enrich_record,
    load_lookup_tables,
    parse_cik_cusip_map,
    parse_company_names,
)

from conftest import make_filing, make_holding


@pytest.fixture
def tables() -> LookupTables:
    return LookupTables.build(
        cusip8_to_cik={"67066G10": "0001045810"},
        cik_to_cusip8={"0001045810": "67066G10", "0001994434": "99999X10"},
        cik_to_names={
            "0001045810": ["NVIDIA CORP"],
            "0001994434": ["WFA Asset Management Corp", "WFA ASSET MGMT"],
        },
    )


class TestParseCompanyNames:
    def test_parses_from_the_tail(self):
        names = parse_company_names(
            [
                "!J INC:0001438823:\n",
                "A: B CAPITAL LLC:0001234567:\n",
                "\n",
                "OLD NAME INC:0001438823:\n",
            ]
        )
        assert names == {
            "0001438823": ["!J INC", "OLD NAME INC"],
            "0001234567": ["A: B CAPITAL LLC"],
        }

    @pytest.mark.parametrize(
        "line",
        ["NO CIK HERE", "NAME:notacik:", "NAME:0001234567:extra", "0001234567"],
    )
    def test_malformed_lines_are_skipped(self, line):
        assert parse_company_names([line]) == {}

    def test_duplicate_names_collapse(self):
        names = parse_company_names(["X:1:", "X:1:"])
        assert names == {"0000000001": ["X"]}


class TestParseCikCusipMap:
    def test_float_ciks_are_normalised(self):
        cusip8_to_cik, cik_to_cusip8 = parse_cik_cusip_map(
            [
                {"cik": "828119.0", "cusip6": "88343A", "cusip8": "88343A10"},
                {"cik": "bogus", "cusip6": "000000", "cusip8": "00000010"},
            ]
        )
        assert cusip8_to_cik == {"88343A10": "0000828119"}
        assert cik_to_cusip8 == {"0000828119": "88343A10"}

    def test_load_from_files(self, tmp_path):
        cik_cusip = tmp_path / "cik-cusip-maps.csv"
        cik_cusip.write_text("cik,cusip6,cusip8\n1045810.0,67066G,67066G10\n")
        cik_names = tmp_path / "cik-lookup-data.txt"
        cik_names.write_text("NVIDIA CORP:0001045810:\n", encoding="latin-1")

        tables = load_lookup_tables(cik_cusip, cik_names)

        assert tables.cusip8_to_cik == {"67066G10": "0001045810"}
        assert tables.cik_to_names == {"0001045810": ["NVIDIA CORP"]}

    def test_tables_are_read_only(self, tables):
        with pytest.raises(TypeError):
            tables.cusip8_to_cik["X"] = "1"


class TestEnrichRecord:
    def test_cusip9_to_cusip8(self):
        assert cusip9_to_cusip8("67066G104") == "67066G10"

    def test_fund_and_holdings(self, tables):
        filing = make_filing(
            holdings=[make_holding(cusip="67066G104"), make_holding(cusip="037833100")]
        )

        enriched = enrich_record(filing, tables)

        assert enriched.cusip8 == "99999X10"
        assert enriched.company_names == ["WFA Asset Management Corp", "WFA ASSET MGMT"]

        known, unknown = enriched.holdings
        assert known.cusip8 == "67066G10"
        assert known.cik == "0001045810"
        assert known.company_names == ["NVIDIA CORP"]

        # Unmatched holdings stay, with a null CIK
        assert unknown.cusip8 == "03783310"
        assert unknown.cik is None
        assert unknown.company_names is None

    def test_discovery_only_record(self, tables):
        enriched = enrich_record(make_filing(cik="0000000001"), tables)
        assert enriched.holdings is None
        assert enriched.cusip8 is None
        assert enriched.company_names is None

    def test_input_is_not_mutated(self, tables):
        filing = make_filing(holdings=[make_holding()])
        enrich_record(filing, tables)
        assert filing.holdings[0].cusip8 is None


class TestEnrichDataset:
    def test_rewrites_records(self, tmp_path, tables):
        DatasetSink(tmp_path).write(make_filing(holdings=[make_holding()]).to_dict())

        report = enrich_dataset(tmp_path, tables)

        assert report.written == 1
        record = Filing.from_dict(json.loads((tmp_path / "000199443424000004.json").read_text()))
        assert record.cusip8 == "99999X10"
        assert record.holdings[0].cik == "0001045810"
