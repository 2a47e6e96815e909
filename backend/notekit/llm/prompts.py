"""Prompt builders for note generation, consolidation, cleanup and compilation."""

from collections.abc import Sequence

from backend.notekit.models.notes import Note, Section

NOTE_TAKER_SYSTEM_PROMPT = """You are an expert note-taking assistant. You turn source material into
structured study notes: a short title, a few tags, and sections with clear titles and
detailed explanations. Always answer with valid JSON only."""

COMPILE_SYSTEM_PROMPT = """You synthesize several sets of notes into one well-organized compiled note.
Combine the key information, remove redundancy, and organize the result into sections.
Track which source notes each section draws from. Always answer with valid JSON only."""


def format_sections(sections: Sequence[Section], *, start: int = 1) -> str:
    """Render sections as numbered context blocks."""
    return "\n\n".join(
        f"Section {idx}: {section.title}\n{section.content}"
        for idx, section in enumerate(sections, start=start)
    )


def build_live_seed_prompt(chunk: str, meeting_title: str | None = None) -> str:
    """Prompt for the first transcript chunk of a live note."""
    meeting_line = f"\nMeeting: {meeting_title}\n" if meeting_title else ""
    return f"""You are taking notes on a meeting transcript as it is being recorded.
Start the notes from the first transcript chunk below.

TRANSCRIPT CHUNK:
{chunk}
{meeting_line}
RULES:
- Create between 1 and 3 sections
- Group related points under one broad section
- Only split into separate sections for clearly different topics

Answer with JSON:
{{
  "title": "meeting title",
  "sections": [
    {{"title": "broad topic", "content": "summary of the related points"}}
  ]
}}"""


def build_consolidation_prompt(
    chunk: str, existing_sections: Sequence[Section], meeting_title: str | None = None
) -> str:
    """Prompt asking how a new transcript chunk changes the existing sections."""
    meeting_line = f"\nMeeting: {meeting_title}\n" if meeting_title else ""
    return f"""You are taking notes on a meeting transcript as it is being recorded.
Fold the new transcript chunk into the existing notes while keeping the notes compact.
{meeting_line}
EXISTING NOTES:
{format_sections(existing_sections, start=0)}

NEW TRANSCRIPT CHUNK:
{chunk}

RULES:
1. Prefer updating an existing section over creating a new one
2. Add a new section only when the chunk covers a topic unrelated to every existing section
3. When updating, give only the new information; it is appended to the section
4. Do not create small sections for minor details
5. Keep the notes to 3-6 sections in total

Answer with a JSON array only:
[
  {{
    "action": "update" or "add",
    "index": number of the section to update, or -1 for "add",
    "title": "section title (keep the existing title when updating)",
    "content": "new information for this section"
  }}
]
Answer with [] when the chunk adds nothing."""


def build_cleanup_prompt(sections: Sequence[Section]) -> str:
    """Prompt asking to consolidate and polish sections before saving."""
    return f"""You are tidying meeting notes before they are saved.

CURRENT SECTIONS:
{format_sections(sections)}

TASK:
1. Merge sections whose headings cover similar or related topics
2. End up with 3-6 sections that use broad, descriptive titles
3. Remove unfinished sentences and fragmented ideas
4. Remove information repeated across sections
5. Keep the wording concise, complete and readable

For every resulting section list the numbers of the current sections it was built
from in "merged_from".

Answer with a JSON array only:
[
  {{
    "title": "section title",
    "content": "cleaned, merged content",
    "merged_from": [1, 2]
  }}
]"""


def build_compile_prompt(notes: Sequence[Note]) -> str:
    """Prompt asking to compile several notes into one with per-section sources."""
    blocks = "\n\n".join(
        f"Note {idx} (ID: {note.id}): {note.title}\n{note.render_text()}"
        for idx, note in enumerate(notes, start=1)
    )
    return f"""Compile these {len(notes)} notes into one comprehensive note.

{blocks}

Answer with a JSON object:
{{
  "title": "compiled title",
  "sections": [
    {{
      "title": "section title",
      "content": "section content",
      "source_ids": ["id of every note this section draws from"]
    }}
  ]
}}
Use the note IDs exactly as given. When a section draws from several notes, list all of them."""


def build_url_notes_prompt(url: str) -> str:
    """Prompt asking for study notes about the content at a URL."""
    return f"""Analyze the content at this URL and create detailed study notes: {url}

Provide a title, 3-5 relevant tags and 5-8 sections covering the key concepts.

Answer with JSON:
{{
  "title": "note title",
  "tags": ["tag1", "tag2"],
  "sections": [{{"title": "section name", "content": "detailed explanation"}}]
}}"""


def build_transcript_notes_prompt(transcript: str) -> str:
    """Prompt asking for study notes from a complete meeting transcript."""
    return f"""Analyze this meeting transcript and create structured, comprehensive notes.

TRANSCRIPT:
{transcript}

Provide a title based on the meeting content, 3-5 relevant tags and 5-8 sections
covering the key concepts discussed.

Answer with JSON:
{{
  "title": "note title",
  "tags": ["tag1", "tag2"],
  "sections": [{{"title": "section name", "content": "detailed explanation"}}]
}}"""


def build_metadata_prompt(content_summary: str) -> str:
    """Prompt asking for a title and tags for existing note content."""
    return f"""Create a title and tags for these meeting notes.

CONTENT:
{content_summary}

RULES:
- The title is specific to the content and 3-8 words long
- Give 3-5 tags: single words or short phrases that categorize the content

Answer with JSON only:
{{"title": "Meeting Title", "tags": ["tag1", "tag2", "tag3"]}}"""


QNA_SYSTEM_PROMPT = """You are a helpful study assistant. Answer questions based on the provided
note. Be concise but thorough. If the note does not contain the answer, say so and provide
general information."""


def build_qna_prompt(question: str, note: Note) -> str:
    """Prompt asking a question about one note."""
    source_line = f" (source: {note.source_url})" if note.source_url else ""
    return f"""Note "{note.title}"{source_line}:
{note.render_text()}

Question: {question}

Provide a clear, concise answer."""
