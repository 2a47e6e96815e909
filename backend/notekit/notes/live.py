"""Live note session - running state of one note recorded from a transcript stream."""

import logging
from dataclasses import dataclass, field

from backend.notekit.config import Settings
from backend.notekit.llm.client import TextGenerator
from backend.notekit.models.notes import LiveNoteSeed, Section, SectionUpdate, TranscriptChunk
from backend.notekit.notes.consolidator import consolidate
from backend.notekit.notes.sections import apply_updates

logger = logging.getLogger(__name__)


@dataclass
class LiveNoteSession:
    """Folds transcript chunks into a title and sections.

    Chunks are processed in the order ingest() is awaited. The session does
    not lock; callers must not ingest concurrently into one session.
    """

    generator: TextGenerator
    title: str | None = None
    sections: list[Section] = field(default_factory=list)
    settings: Settings | None = None
    last_sequence_no: int | None = None

    async def ingest(self, chunk: TranscriptChunk) -> LiveNoteSeed | list[SectionUpdate]:
        """Consolidate one chunk and apply the result to the session."""
        if self.last_sequence_no is not None and chunk.sequence_no <= self.last_sequence_no:
            logger.warning(
                f"Transcript chunk {chunk.sequence_no} arrived after "
                f"{self.last_sequence_no}; processing in submission order"
            )
        self.last_sequence_no = chunk.sequence_no

        result = await consolidate(
            chunk.text,
            self.sections,
            generator=self.generator,
            meeting_title=self.title,
            settings=self.settings,
        )

        if isinstance(result, LiveNoteSeed):
            if result.title and not self.title:
                self.title = result.title
            updates = [SectionUpdate(action="add", content=s) for s in result.sections]
        else:
            updates = result

        self.sections = apply_updates(self.sections, updates)
        return result
