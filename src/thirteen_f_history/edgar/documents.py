"""Filing directory pages: finding data documents and deciding what they contain."""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable
from urllib.parse import urljoin

import lxml.html
from lxml import etree

from ..errors import NoDocumentsFound
from .parser import parse_info_table, parse_primary_doc, parse_xml

log = logging.getLogger(__name__)


class DocumentType(str, Enum):
    PRIMARY_DOC = "primary_doc"
    INFO_TABLE = "info_table"
    UNKNOWN = "unknown"


@dataclass
class VisitedDocument:
    """A fetched document, its detected type and its raw content."""

    url: str
    type: DocumentType
    content: str

    def to_dict(self, include_content: bool = True) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        if not include_content:
            del data["content"]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VisitedDocument":
        return cls(
            url=data["url"],
            type=DocumentType(data.get("type", DocumentType.UNKNOWN.value)),
            content=data.get("content", ""),
        )


@dataclass
class ExtractedDocument:
    """Result of classifying and extracting one document."""

    document: VisitedDocument
    fields: dict = field(default_factory=dict)


def _filename_priority(url: str) -> int:
    """Weak ordering hint from the filename. Never used to decide the type."""
    lower = url.lower()
    name = lower.rsplit("/", 1)[-1]
    if "/xsl" in lower:
        # Rendered views of the same documents
        return 3
    if "primary" in name and "doc" in name:
        return 0
    if ("info" in name and "table" in name) or name.startswith("form13f"):
        return 1
    return 2


def find_data_document_urls(html: str | bytes, page_url: str) -> list[str]:
    """
    Collect the XML document links of a filing directory page.

    Args:
        html: Directory listing page HTML
        page_url: URL of the page, used to resolve relative links

    Returns:
        Absolute URLs, likely primary documents first

    Raises:
        NoDocumentsFound: If the page links to no .xml files
    """
    if not html or not html.strip():
        raise NoDocumentsFound(f"Empty directory page: {page_url}")

    try:
        doc = lxml.html.fromstring(html)
    except etree.ParserError as e:
        # No elements at all, e.g. a comment-only or truncated body
        raise NoDocumentsFound(f"Unreadable directory page {page_url}: {e}") from e

    urls: list[str] = []
    for anchor in doc.iter("a"):
        href = (anchor.get("href") or "").strip()
        if not href.lower().endswith(".xml"):
            continue
        url = urljoin(page_url, href)
        if url not in urls:
            urls.append(url)

    if not urls:
        raise NoDocumentsFound(f"No XML documents found on {page_url}")

    # sorted() is stable, so page order is kept within each priority
    return sorted(urls, key=_filename_priority)


def _has_nonempty(root: etree._Element, tag: str) -> bool:
    for el in root.iter(tag):
        if "".join(el.itertext()).strip():
            return True
    return False


def has_primary_doc_marker(root: etree._Element) -> bool:
    """True if the tree holds a non-empty filing submission wrapper."""
    return _has_nonempty(root, "edgarSubmission")


def has_holdings_marker(root: etree._Element) -> bool:
    """True if the tree holds a non-empty information table wrapper."""
    return _has_nonempty(root, "informationTable")


def _primary_doc_fields(root: etree._Element, url: str) -> dict:
    return parse_primary_doc(root, url=url).to_fields()


def _info_table_fields(root: etree._Element, url: str) -> dict:
    return {"holdings": parse_info_table(root)}


# Checked in order, first match wins
DOCUMENT_HANDLERS: tuple[
    tuple[Callable[[etree._Element], bool], DocumentType, Callable[[etree._Element, str], dict]],
    ...,
] = (
    (has_primary_doc_marker, DocumentType.PRIMARY_DOC, _primary_doc_fields),
    (has_holdings_marker, DocumentType.INFO_TABLE, _info_table_fields),
)


def classify(root: etree._Element) -> DocumentType:
    """Decide a document's type from its content."""
    for predicate, doc_type, _ in DOCUMENT_HANDLERS:
        if predicate(root):
            return doc_type
    return DocumentType.UNKNOWN


def extract_document(url: str, content: bytes | str) -> ExtractedDocument:
    """
    Classify a fetched document and extract its fields.

    Documents that are not well-formed XML, or match no handler, are kept as
    UNKNOWN with their raw content and contribute no fields.

    Raises:
        ExtractionError: If a primary document is malformed
    """
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content

    try:
        root = parse_xml(content)
    except etree.XMLSyntaxError as e:
        log.warning("Not well-formed XML at %s: %s", url, e)
        return ExtractedDocument(VisitedDocument(url, DocumentType.UNKNOWN, text))

    for predicate, doc_type, extractor in DOCUMENT_HANDLERS:
        if predicate(root):
            return ExtractedDocument(VisitedDocument(url, doc_type, text), extractor(root, url))

    log.info("Unrecognised document kept as unknown: %s", url)
    return ExtractedDocument(VisitedDocument(url, DocumentType.UNKNOWN, text))
