"""Dataset directory storage, consolidation, enrichment and exports."""

from .consolidate import consolidate_dataset, merge_amendments, reassemble_fragments
from .dataset import DatasetSink, PassReport, iter_records
from .enrich import LookupTables, enrich_dataset, enrich_record, load_lookup_tables
from .exports import export_tables, export_timeseries
from .timeseries import QuarterlyPosition, reconstruct_positions, report_date_horizon

__all__ = [
    "DatasetSink",
    "LookupTables",
    "PassReport",
    "QuarterlyPosition",
    "consolidate_dataset",
    "enrich_dataset",
    "enrich_record",
    "export_tables",
    "export_timeseries",
    "iter_records",
    "load_lookup_tables",
    "merge_amendments",
    "reassemble_fragments",
    "reconstruct_positions",
    "report_date_horizon",
]
