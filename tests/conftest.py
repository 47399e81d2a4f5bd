"""Shared fixtures: small 13F documents and filings."""

import pytest

from thirteen_f_history.edgar.filings import Filing
from thirteen_f_history.edgar.parser import Holding

PRIMARY_DOC_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<edgarSubmission xmlns="http://www.sec.gov/edgar/thirteenffiler"
                 xmlns:com="http://www.sec.gov/edgar/common">
  <headerData>
    <submissionType>13F-HR/A</submissionType>
  </headerData>
  <formData>
    <coverPage>
      <reportCalendarOrQuarter>03-31-2024</reportCalendarOrQuarter>
      <isAmendment>true</isAmendment>
      <amendmentNo>1</amendmentNo>
      <amendmentInfo>
        <amendmentType>RESTATEMENT</amendmentType>
      </amendmentInfo>
      <filingManager>
        <name>Example Capital LLC</name>
        <address>
          <com:street1>1 Main St</com:street1>
          <com:street2>Suite 100</com:street2>
          <com:city>New York</com:city>
          <com:stateOrCountry>ny</com:stateOrCountry>
          <com:zipCode>10001</com:zipCode>
        </address>
      </filingManager>
      <reportType>13F HOLDINGS REPORT</reportType>
      <form13FFileNumber>028-12345</form13FFileNumber>
    </coverPage>
    <summaryPage>
      <otherIncludedManagersCount>1</otherIncludedManagersCount>
      <tableEntryTotal>2</tableEntryTotal>
      <tableValueTotal>1,500,000</tableValueTotal>
      <isConfidentialOmitted>false</isConfidentialOmitted>
      <otherManagers2Info>
        <otherManager2>
          <sequenceNumber>1</sequenceNumber>
          <otherManager>
            <form13FFileNumber>028-99999</form13FFileNumber>
            <name>Other Adviser LP</name>
          </otherManager>
        </otherManager2>
      </otherManagers2Info>
    </summaryPage>
  </formData>
</edgarSubmission>
"""

INFO_TABLE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<ns1:informationTable xmlns:ns1="http://www.sec.gov/edgar/document/thirteenf/informationtable">
  <ns1:infoTable>
    <ns1:nameOfIssuer>NVIDIA  CORP</ns1:nameOfIssuer>
    <ns1:titleOfClass>COM</ns1:titleOfClass>
    <ns1:cusip>67066g104</ns1:cusip>
    <ns1:value>1,000,000</ns1:value>
    <ns1:shrsOrPrnAmt>
      <ns1:sshPrnamt>10000</ns1:sshPrnamt>
      <ns1:sshPrnamtType>SH</ns1:sshPrnamtType>
    </ns1:shrsOrPrnAmt>
    <ns1:investmentDiscretion>SOLE</ns1:investmentDiscretion>
    <ns1:votingAuthority>
      <ns1:Sole>10000</ns1:Sole>
      <ns1:Shared>0</ns1:Shared>
      <ns1:None>0</ns1:None>
    </ns1:votingAuthority>
  </ns1:infoTable>
  <ns1:infoTable>
    <ns1:nameOfIssuer>APPLE INC</ns1:nameOfIssuer>
    <ns1:titleOfClass>COM</ns1:titleOfClass>
    <ns1:cusip>37833100</ns1:cusip>
    <ns1:value>500000</ns1:value>
    <ns1:shrsOrPrnAmt>
      <ns1:sshPrnamt>5000</ns1:sshPrnamt>
      <ns1:sshPrnamtType>SH</ns1:sshPrnamtType>
    </ns1:shrsOrPrnAmt>
    <ns1:putCall>Put</ns1:putCall>
    <ns1:investmentDiscretion>DFND</ns1:investmentDiscretion>
    <ns1:otherManager>1</ns1:otherManager>
  </ns1:infoTable>
</ns1:informationTable>
"""

DIRECTORY_HTML = """<html><body>
<table>
  <tr><td><a href="/Archives/edgar/data/1994434/000199443424000004/xslForm13F_X02/primary_doc.xml">primary_doc.xml</a></td></tr>
  <tr><td><a href="/Archives/edgar/data/1994434/000199443424000004/infotable.xml">infotable.xml</a></td></tr>
  <tr><td><a href="/Archives/edgar/data/1994434/000199443424000004/primary_doc.xml">primary_doc.xml</a></td></tr>
  <tr><td><a href="/Archives/edgar/data/1994434/000199443424000004/0001994434-24-000004.txt">full submission</a></td></tr>
</table>
</body></html>
"""

DIRECTORY_URL = "https://www.sec.gov/Archives/edgar/data/1994434/000199443424000004"


@pytest.fixture
def primary_doc_xml() -> bytes:
    return PRIMARY_DOC_XML


@pytest.fixture
def info_table_xml() -> bytes:
    return INFO_TABLE_XML


@pytest.fixture
def directory_html() -> str:
    return DIRECTORY_HTML


def make_filing(external_id: str = "000199443424000004", **kwargs) -> Filing:
    """A filing shell with sensible identifiers."""
    directory_url = f"https://www.sec.gov/Archives/edgar/data/1994434/{external_id}"
    values = dict(
        external_id=external_id,
        company_name="Example Capital LLC",
        cik="0001994434",
        form_type="13F-HR",
        date_filed="2024-05-15",
        directory_url=directory_url,
        full_submission_url=f"{directory_url}.txt",
        index_page_url=f"{directory_url}/index.html",
    )
    values.update(kwargs)
    return Filing(**values)


def make_holding(cusip: str = "67066G104", value: float = 100.0, shares: float = 10.0, **kwargs) -> Holding:
    values = dict(
        cusip=cusip,
        issuer_name="NVIDIA CORP",
        class_title="COM",
        value=value,
        shares_or_principal_amount=shares,
        amount_type="sh",
    )
    values.update(kwargs)
    return Holding(**values)


@pytest.fixture(autouse=True)
def sec_contact_email(monkeypatch):
    monkeypatch.setenv("SEC_CONTACT_EMAIL", "tests@example.com")
