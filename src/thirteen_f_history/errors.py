"""Exceptions raised while ingesting and consolidating 13F filings."""


class Form13FError(Exception):
    """Base class for all errors raised by this package."""


class SourceFormatError(Form13FError, ValueError):
    """A listing row or feed entry does not have the expected shape.

    Fatal for that single entry only. Batch callers log it and move on.
    """


class ExtractionError(Form13FError, ValueError):
    """A primary filing document could not be parsed."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NoDocumentsFound(Form13FError, LookupError):
    """A filing directory page links to no XML documents."""


class ConsolidationIntegrityError(Form13FError):
    """A fragment group cannot be reassembled into a valid record."""

    def __init__(self, message: str, correlation_id: str | None = None) -> None:
        super().__init__(message)
        self.correlation_id = correlation_id
