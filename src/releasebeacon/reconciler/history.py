"""Loading the release entries a canvas already holds."""

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from releasebeacon.formatting.canvas import parse_document_entries
from releasebeacon.models.release import ReleaseEntry
from releasebeacon.slack.errors import ApiError
from releasebeacon.slack.interfaces import DocumentStore, EntryStore

FROM_STORE = "store"
FROM_DOCUMENT = "document"
FROM_NOTHING = "none"


@dataclass(frozen=True)
class PriorEntries:
    entries: List[ReleaseEntry] = field(default_factory=list)
    source: str = FROM_NOTHING


class PriorEntriesLoader:
    """Prior entries come from the entry store when it has them.

    Scraping the rendered canvas is only a fallback for when no entry store is
    configured or it holds nothing for the key yet.
    """

    def __init__(self, documents: DocumentStore, entry_store: Optional[EntryStore] = None):
        self.documents = documents
        self.entry_store = entry_store

    def load_from_store(self, key: str) -> Optional[List[ReleaseEntry]]:
        if self.entry_store is None:
            return None
        return self.entry_store.load_entries(key)

    async def scrape_document(self, document_id: str) -> List[ReleaseEntry]:
        try:
            text = await self.documents.read_document(document_id)
        except ApiError as e:
            logger.warning(f"Could not read canvas {document_id}, starting a fresh history: {e.describe()}")
            return []

        entries = parse_document_entries(text or "")
        logger.debug(f"Recovered {len(entries)} entries from canvas {document_id}")
        return entries

    async def load(self, key: str, document_id: Optional[str] = None) -> PriorEntries:
        stored = self.load_from_store(key)
        if stored is not None:
            logger.debug(f"Loaded {len(stored)} entries for {key} from the entry store")
            return PriorEntries(entries=stored, source=FROM_STORE)

        if document_id:
            return PriorEntries(entries=await self.scrape_document(document_id), source=FROM_DOCUMENT)

        return PriorEntries()
