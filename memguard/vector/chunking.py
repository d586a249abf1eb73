"""
Text chunking.
Splits plain text, markdown and conversation transcripts into overlapping,
boundary-aware chunks ready for embedding.
"""

import math
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .types import TextChunk

DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 64

# Tried in order; the first pattern with a match in the window's last quarter wins.
BOUNDARY_PATTERNS = [
    re.compile(r"\n\n"),
    re.compile(r"\n"),
    re.compile(r"[。！？]"),
    re.compile(r"[.!?]"),
    re.compile(r"[，,；;]"),
]

HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
CJK_PATTERN = re.compile(r"[一-龥]")


@dataclass
class ChunkOptions:
    """Chunking parameters and the provenance stamped onto every chunk."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    source_path: str = "unknown"
    session_key: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def with_metadata(self, extra: Dict[str, Any]) -> "ChunkOptions":
        """Copy of these options with `extra` merged over the caller metadata."""
        merged = dict(self.metadata or {})
        merged.update(extra)
        return ChunkOptions(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            source_path=self.source_path,
            session_key=self.session_key,
            metadata=merged,
        )


def _new_chunk(text: str, offset: int, timestamp: int, options: ChunkOptions) -> TextChunk:
    return TextChunk(
        id=uuid.uuid4().hex,
        text=text,
        source_path=options.source_path,
        offset=offset,
        timestamp=timestamp,
        session_key=options.session_key,
        metadata=options.metadata,
    )


def chunk_text(text: str, options: Optional[ChunkOptions] = None) -> List[TextChunk]:
    """
    Split text into overlapping chunks with a sliding window.

    Each window is shrunk to the last natural boundary in its final quarter.
    The scan cursor always advances by chunk_size - chunk_overlap, so boundary
    adjustment only trims the emitted text.

    Args:
        text: Text to split
        options: Chunk size, overlap and provenance (defaults if omitted)

    Returns:
        Chunks in source order; empty list for blank input

    Raises:
        ValueError: If chunk_overlap is not smaller than chunk_size
    """
    options = options or ChunkOptions()

    if not text or not text.strip():
        return []

    timestamp = int(time.time() * 1000)

    if len(text) <= options.chunk_size:
        return [_new_chunk(text.strip(), 0, timestamp, options)]

    step = options.chunk_size - options.chunk_overlap
    if step <= 0:
        raise ValueError(
            f"chunk_overlap ({options.chunk_overlap}) must be smaller than chunk_size ({options.chunk_size})"
        )

    chunks = []
    offset = 0
    while offset < len(text):
        end = min(offset + options.chunk_size, len(text))
        window = _adjust_boundary(text[offset:end], end >= len(text))

        stripped = window.strip()
        if stripped:
            chunks.append(_new_chunk(stripped, offset, timestamp, options))

        offset += step

    return chunks


def _adjust_boundary(window: str, reaches_end: bool) -> str:
    """Trim a window to end after its last natural boundary in the final quarter."""
    if reaches_end:
        return window

    search_start = math.floor(len(window) * 0.75)
    region = window[search_start:]

    for pattern in BOUNDARY_PATTERNS:
        last_match = None
        for last_match in pattern.finditer(region):
            pass
        if last_match is not None:
            return window[:search_start + last_match.end()]

    return window


def split_by_headers(content: str) -> List[Dict[str, str]]:
    """
    Split markdown on #-style headers.

    Returns a list of {header, content} sections. Text before the first header
    becomes an untitled section; each header line stays in its own section.
    """
    matches = list(HEADER_PATTERN.finditer(content))
    if not matches:
        return [{"header": "", "content": content}]

    sections = []
    if matches[0].start() > 0:
        sections.append({"header": "", "content": content[:matches[0].start()]})

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        sections.append({"header": match.group(2), "content": content[match.start():end]})

    return sections


def chunk_markdown(content: str, options: Optional[ChunkOptions] = None) -> List[TextChunk]:
    """Chunk markdown section by section, tagging chunks with their section header."""
    options = options or ChunkOptions()
    cleaned = EXCESS_BLANK_LINES.sub("\n\n", content or "")

    all_chunks = []
    for section in split_by_headers(cleaned):
        if not section["content"].strip():
            continue
        section_options = options.with_metadata({"sectionHeader": section["header"], "type": "markdown"})
        all_chunks.extend(chunk_text(section["content"], section_options))

    return all_chunks


def format_conversation(messages: Sequence[Mapping[str, Any]]) -> str:
    """Render turns as `[User]: ...` / `[Assistant]: ...` lines separated by blank lines."""
    lines = []
    for message in messages:
        role_label = "User" if message.get("role") == "user" else "Assistant"
        lines.append(f"[{role_label}]: {message.get('content', '')}")
    return "\n\n".join(lines)


def chunk_conversation(messages: Sequence[Mapping[str, Any]], options: Optional[ChunkOptions] = None) -> List[TextChunk]:
    """Chunk a list of {role, content} turns as one conversation transcript."""
    options = options or ChunkOptions()
    conversation_options = options.with_metadata({"type": "conversation", "messageCount": len(messages)})
    return chunk_text(format_conversation(messages), conversation_options)


def estimate_tokens(text: str) -> int:
    """Rough token count: CJK at 1.5 chars/token, everything else at 4 chars/token."""
    cjk_chars = len(CJK_PATTERN.findall(text))
    other_chars = len(text) - cjk_chars
    return math.ceil(cjk_chars / 1.5 + other_chars / 4)
