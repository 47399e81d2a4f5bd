"""SEC EDGAR listing sources, filing documents and their parsers."""

from .client import EdgarClient
from .documents import DocumentType, VisitedDocument, extract_document, find_data_document_urls
from .feed import FeedEntry, iter_recent_filings, parse_feed_page
from .filings import Filing, filing_from_feed_entry, filings_from_index, pad_cik
from .index import Period, generate_periods, parse_index_file, periods_for_last_year
from .parser import Holding, parse_13f_info_table

__all__ = [
    "DocumentType",
    "EdgarClient",
    "FeedEntry",
    "Filing",
    "Holding",
    "Period",
    "VisitedDocument",
    "extract_document",
    "filing_from_feed_entry",
    "filings_from_index",
    "find_data_document_urls",
    "generate_periods",
    "iter_recent_filings",
    "pad_cik",
    "parse_13f_info_table",
    "parse_feed_page",
    "parse_index_file",
    "periods_for_last_year",
]
