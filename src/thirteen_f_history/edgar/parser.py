"""Parsers for 13F primary documents and information table XML files."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime

from lxml import etree

from ..errors import ExtractionError


@dataclass
class Holding:
    """A single holding from a 13F information table."""

    cusip: str
    issuer_name: str
    class_title: str
    value: float  # as reported
    shares_or_principal_amount: float
    amount_type: str  # "sh" or "prn"
    option_type: str | None = None  # "put", "call", or None
    investment_discretion: str = ""
    other_manager: str = ""
    # Copied verbatim; presence varies by filing vintage
    voting_authority_sole: str | None = None
    voting_authority_shared: str | None = None
    voting_authority_none: str | None = None
    # Cross-reference enrichment
    cusip8: str | None = None
    cik: str | None = None
    company_names: list[str] | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Holding":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class OtherManager:
    """A co-filing manager listed on the cover page."""

    sequence_number: int
    file_number: str
    name: str


@dataclass
class PrimaryDocument:
    """Fields extracted from a filing's primary (cover page) document."""

    report_date: str  # "YYYY-MM-DD"
    street1: str
    street2: str
    city: str
    state_or_country: str
    zip_code: str
    other_included_managers_count: int
    holdings_count_reported: int
    holdings_value_reported: float
    confidential_omitted: bool
    report_type: str
    amendment_type: str | None
    amendment_number: int
    file_number: str
    other_managers: list[OtherManager] = field(default_factory=list)

    def to_fields(self) -> dict:
        """Shallow field mapping, ready to merge into a Filing."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def strip_namespaces(root: etree._Element) -> etree._Element:
    """Drop namespace prefixes from every tag, e.g. `ns1:infoTable` -> `infoTable`."""
    for el in root.iter():
        # Comments and processing instructions have non-string tags
        if isinstance(el.tag, str):
            el.tag = etree.QName(el).localname
    etree.cleanup_namespaces(root)
    return root


def parse_xml(content: bytes | str) -> etree._Element:
    """
    Parse an XML document into a namespace-free element tree.

    Raises:
        etree.XMLSyntaxError: If the content is not well-formed XML
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    # Use secure parser to prevent XXE attacks
    # - resolve_entities=False: Don't resolve external entities
    # - no_network=True: Don't fetch external resources
    # - dtd_validation=False: Don't process DTD
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        dtd_validation=False,
        remove_blank_text=True,
    )
    root = etree.fromstring(content, parser=parser)
    return strip_namespaces(root)


def _get_text(element: etree._Element, path: str, default: str = "") -> str:
    """Extract the stripped text of the first element matching path."""
    found = element.find(path)
    if found is None:
        return default
    return "".join(found.itertext()).strip()


def _get_optional_text(element: etree._Element, path: str) -> str | None:
    found = element.find(path)
    if found is None:
        return None
    return "".join(found.itertext()).strip()


def _to_number(text: str) -> str:
    # Remove commas and other formatting
    return text.replace(",", "").replace(" ", "").replace("$", "")


def _get_int(element: etree._Element, path: str, default: int = 0) -> int:
    """Extract an integer. Blank means default; garbage raises ValueError."""
    text = _to_number(_get_text(element, path))
    if not text:
        return default
    return int(float(text))


def _get_float(element: etree._Element, path: str, default: float = 0.0) -> float:
    """Extract a float. Blank means default; garbage raises ValueError."""
    text = _to_number(_get_text(element, path))
    if not text:
        return default
    return float(text)


def _get_float_or_default(element: etree._Element, path: str, default: float = 0.0) -> float:
    """Like _get_float, but unparseable text also yields the default."""
    try:
        return _get_float(element, path, default)
    except ValueError:
        return default


def _normalize_text(text: str) -> str:
    """Normalize text: collapse whitespace."""
    return " ".join(text.split()).strip()


def _normalize_cusip(cusip: str) -> str:
    """
    Normalize CUSIP to 9 uppercase characters.

    Some historical filings omit the trailing check digit, so short values are
    zero-padded on the left.
    """
    return cusip.strip().upper()[:9].rjust(9, "0")


def _parse_report_date(text: str) -> str:
    """Convert the cover page's MM-DD-YYYY report period into YYYY-MM-DD."""
    return datetime.strptime(text, "%m-%d-%Y").strftime("%Y-%m-%d")


def parse_primary_doc(root: etree._Element, url: str | None = None) -> PrimaryDocument:
    """
    Extract filing metadata from a 13F primary document.

    Unlike the information table parser this one is strict: missing or
    malformed fields mean the document itself is broken.

    Args:
        root: Namespace-free element tree (see parse_xml)
        url: Source URL, used for error reporting

    Returns:
        PrimaryDocument

    Raises:
        ExtractionError: If any field fails to parse
    """
    try:
        report_date = _parse_report_date(_get_text(root, ".//reportCalendarOrQuarter"))

        other_managers = [
            OtherManager(
                sequence_number=_get_int(el, "sequenceNumber"),
                file_number=_get_text(el, ".//form13FFileNumber"),
                name=_get_text(el, ".//name"),
            )
            for el in root.iterfind(".//otherManagers2Info/otherManager2")
        ]

        return PrimaryDocument(
            report_date=report_date,
            street1=_get_text(root, ".//address/street1").lower(),
            street2=_get_text(root, ".//address/street2").lower(),
            city=_get_text(root, ".//address/city").lower(),
            state_or_country=_get_text(root, ".//address/stateOrCountry").upper(),
            zip_code=_get_text(root, ".//address/zipCode"),
            other_included_managers_count=_get_int(root, ".//otherIncludedManagersCount"),
            holdings_count_reported=_get_int(root, ".//tableEntryTotal"),
            holdings_value_reported=_get_float(root, ".//tableValueTotal"),
            confidential_omitted=_get_text(root, ".//isConfidentialOmitted").lower() == "true",
            report_type=_get_text(root, ".//reportType").lower(),
            amendment_type=_get_text(root, ".//amendmentType").lower() or None,
            amendment_number=_get_int(root, ".//amendmentNo"),
            file_number=_get_text(root, ".//coverPage/form13FFileNumber"),
            other_managers=other_managers,
        )
    except (ValueError, TypeError) as e:
        raise ExtractionError(f"Failed to parse primary document: {e}", url=url) from e


def _parse_info_table_entry(entry: etree._Element) -> Holding:
    """Parse a single infoTable entry."""
    option_type = _get_text(entry, "putCall").lower() or None

    return Holding(
        cusip=_normalize_cusip(_get_text(entry, "cusip")),
        issuer_name=_normalize_text(_get_text(entry, "nameOfIssuer")),
        class_title=_normalize_text(_get_text(entry, "titleOfClass")),
        value=_get_float_or_default(entry, "value"),
        shares_or_principal_amount=_get_float_or_default(entry, ".//sshPrnamt"),
        amount_type=_get_text(entry, ".//sshPrnamtType").lower(),
        option_type=option_type,
        investment_discretion=_get_text(entry, "investmentDiscretion").lower(),
        other_manager=_get_text(entry, "otherManager"),
        voting_authority_sole=_get_optional_text(entry, "votingAuthority/Sole"),
        voting_authority_shared=_get_optional_text(entry, "votingAuthority/Shared"),
        voting_authority_none=_get_optional_text(entry, "votingAuthority/None"),
    )


def parse_info_table(root: etree._Element) -> list[Holding]:
    """
    Extract every holding from a namespace-free information table tree.

    Example source:
    https://www.sec.gov/Archives/edgar/data/1003518/000094562123000384/informationtable.xml
    """
    return [_parse_info_table_entry(entry) for entry in root.iter("infoTable")]


def parse_13f_info_table(xml_content: bytes) -> list[Holding]:
    """
    Parse a 13F information table XML file.

    Args:
        xml_content: Raw XML content as bytes

    Returns:
        List of Holding objects
    """
    try:
        root = parse_xml(xml_content)
    except etree.XMLSyntaxError as e:
        raise ValueError(f"Failed to parse XML: {e}")

    return parse_info_table(root)
