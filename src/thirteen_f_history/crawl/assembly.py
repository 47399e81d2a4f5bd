"""
Per-filing document assembly.

A filing is assembled one document at a time. The state of an assembly is a
plain value that can be serialised, inspected and handed to any work queue:

    DISCOVERING --directory page--> RESOLVING --document--> EXTRACTING ... --> COMPLETE

Each document step fetches exactly one URL, classifies it by content and
shallow-merges the extracted fields into the accumulated filing, so later
documents overwrite fields set by earlier ones.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Protocol

import httpx

from ..edgar.documents import VisitedDocument, extract_document, find_data_document_urls
from ..edgar.feed import FeedEntry
from ..edgar.filings import Filing, filing_from_feed_entry, filings_from_index
from ..edgar.index import parse_index_file
from ..errors import ExtractionError, Form13FError, NoDocumentsFound

log = logging.getLogger(__name__)


class AssemblyStage(str, Enum):
    DISCOVERING = "discovering"
    RESOLVING = "resolving"
    EXTRACTING = "extracting"
    COMPLETE = "complete"


class WorkKind(str, Enum):
    DIRECTORY = "directory"
    DOCUMENT = "document"


@dataclass
class AssemblyState:
    """Accumulated filing plus the documents visited and still to visit."""

    filing: Filing
    visited_docs: list[VisitedDocument] = field(default_factory=list)
    remaining_doc_urls: list[str] = field(default_factory=list)
    stage: AssemblyStage = AssemblyStage.DISCOVERING

    @property
    def next_url(self) -> str | None:
        return self.remaining_doc_urls[0] if self.remaining_doc_urls else None

    @property
    def is_complete(self) -> bool:
        return self.stage == AssemblyStage.COMPLETE

    def to_record(self) -> Filing:
        """The filing as persisted: accumulated fields plus every visited document."""
        return replace(self.filing, xml_docs=list(self.visited_docs))

    def to_dict(self) -> dict:
        return {
            "filing": self.filing.to_dict(),
            "visited_docs": [d.to_dict() for d in self.visited_docs],
            "remaining_doc_urls": list(self.remaining_doc_urls),
            "stage": self.stage.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssemblyState":
        return cls(
            filing=Filing.from_dict(data["filing"]),
            visited_docs=[VisitedDocument.from_dict(d) for d in data.get("visited_docs") or []],
            remaining_doc_urls=list(data.get("remaining_doc_urls") or []),
            stage=AssemblyStage(data.get("stage", AssemblyStage.DISCOVERING.value)),
        )


@dataclass
class WorkItem:
    """A URL to fetch and the assembly state it belongs to."""

    kind: WorkKind
    url: str
    state: AssemblyState


def start_assembly(filing: Filing) -> WorkItem:
    """Open an assembly for a freshly discovered filing."""
    state = AssemblyState(filing=filing)
    return WorkItem(WorkKind.DIRECTORY, filing.directory_url, state)


def resolve_documents(state: AssemblyState, directory_html: str | bytes) -> AssemblyState:
    """
    Queue the data documents linked from the filing's directory page.

    A page without XML documents completes the filing as a discovery-only
    record.

    Raises:
        ValueError: If the state has already been resolved
    """
    if state.stage != AssemblyStage.DISCOVERING:
        raise ValueError(f"Cannot resolve documents in stage {state.stage.value}")

    try:
        urls = find_data_document_urls(directory_html, state.filing.directory_url)
    except NoDocumentsFound as e:
        log.info("%s; keeping discovery-only record %s", e, state.filing.external_id)
        return replace(state, remaining_doc_urls=[], stage=AssemblyStage.COMPLETE)

    log.debug("Filing %s: %d documents to visit", state.filing.external_id, len(urls))
    return replace(state, remaining_doc_urls=urls, stage=AssemblyStage.RESOLVING)


def advance(state: AssemblyState, content: bytes | str) -> AssemblyState:
    """
    Fold the content of state.next_url into the filing.

    Args:
        state: A state with at least one remaining document
        content: The fetched body of state.next_url

    Returns:
        The next state; COMPLETE once no documents remain

    Raises:
        ValueError: If there is no document left to visit
        ExtractionError: If the document is a malformed primary document
    """
    url = state.next_url
    if url is None:
        raise ValueError(f"No documents left for filing {state.filing.external_id}")

    extracted = extract_document(url, content)
    remaining = state.remaining_doc_urls[1:]

    return AssemblyState(
        filing=replace(state.filing, **extracted.fields),
        visited_docs=[*state.visited_docs, extracted.document],
        remaining_doc_urls=remaining,
        stage=AssemblyStage.EXTRACTING if remaining else AssemblyStage.COMPLETE,
    )


def seed_from_index(content: str, base_url: str, delimiter: str = "|") -> list[WorkItem]:
    """Directory work items for every 13F filing listed in a master index file."""
    index = parse_index_file(content, delimiter=delimiter)
    return [start_assembly(f) for f in filings_from_index(index, base_url)]


def seed_from_feed(entries: Iterable[FeedEntry]) -> list[WorkItem]:
    """Directory work items for the 13F filings among recent feed entries."""
    items = []
    for entry in entries:
        filing = filing_from_feed_entry(entry)
        if filing is not None:
            items.append(start_assembly(filing))
    return items


class RecordWriter(Protocol):
    def write(self, record: dict) -> list[dict]: ...


class FilingAssembler:
    """
    Runs one assembly transition per work item.

    Args:
        fetch: Returns the body of a URL
        enqueue: Accepts follow-up work items
        writer: Receives each completed filing record
    """

    def __init__(
        self,
        fetch: Callable[[str], bytes],
        enqueue: Callable[[list[WorkItem]], None],
        writer: RecordWriter,
    ) -> None:
        self.fetch = fetch
        self.enqueue = enqueue
        self.writer = writer

    def handle(self, item: WorkItem) -> AssemblyState:
        content = self.fetch(item.url)

        if item.kind == WorkKind.DIRECTORY:
            state = resolve_documents(item.state, content)
        else:
            state = advance(item.state, content)

        if state.is_complete:
            record = state.to_record()
            self.writer.write(record.to_dict())
            log.info(
                "Completed filing %s (%s, %d documents)",
                record.external_id,
                record.company_name,
                len(record.xml_docs),
            )
        else:
            self.enqueue([WorkItem(WorkKind.DOCUMENT, state.next_url, state)])

        return state


@dataclass
class QueueStats:
    steps: int = 0
    completed: int = 0
    failed: int = 0


def run_queue(
    items: Iterable[WorkItem],
    fetch: Callable[[str], bytes],
    writer: RecordWriter,
) -> QueueStats:
    """
    Drain a local work queue until every filing is complete or has failed.

    Follow-up documents are pushed to the front of the queue so a filing is
    finished before the next one starts. A failing item is logged and its
    filing dropped; the rest of the batch carries on.
    """
    queue: deque[WorkItem] = deque(items)
    stats = QueueStats()

    def enqueue(new_items: list[WorkItem]) -> None:
        queue.extendleft(reversed(new_items))

    assembler = FilingAssembler(fetch, enqueue, writer)

    while queue:
        item = queue.popleft()
        stats.steps += 1
        try:
            state = assembler.handle(item)
        except ExtractionError as e:
            log.error("Extraction failed for filing %s: %s", item.state.filing.external_id, e)
            stats.failed += 1
            continue
        except (Form13FError, httpx.HTTPError) as e:
            log.error("Failed %s %s: %s", item.kind.value, item.url, e)
            stats.failed += 1
            continue

        if state.is_complete:
            stats.completed += 1

    log.info(
        "Queue drained: %d steps, %d filings completed, %d failed",
        stats.steps,
        stats.completed,
        stats.failed,
    )
    return stats
