"""
Test cases for text, markdown and conversation chunking.
"""

import string

import pytest

from memguard.vector.chunking import (
    ChunkOptions,
    chunk_conversation,
    chunk_markdown,
    chunk_text,
    estimate_tokens,
    format_conversation,
    split_by_headers,
)


class TestChunkText:
    """Sliding-window chunking of plain text."""

    def test_blank_input_returns_no_chunks(self):
        assert chunk_text("") == []
        assert chunk_text("   \n\t ") == []

    def test_short_input_is_single_trimmed_chunk(self):
        chunks = chunk_text("  remember the milk  ", ChunkOptions(chunk_size=100, chunk_overlap=10))

        assert len(chunks) == 1
        assert chunks[0].text == "remember the milk"
        assert chunks[0].offset == 0

    def test_provenance_is_stamped_on_every_chunk(self):
        options = ChunkOptions(chunk_size=50, chunk_overlap=10, source_path="notes/today.md",
                               session_key="s-1", metadata={"tag": "x"})
        chunks = chunk_text("word " * 60, options)

        assert len(chunks) > 1
        assert all(c.source_path == "notes/today.md" for c in chunks)
        assert all(c.session_key == "s-1" for c in chunks)
        assert all(c.metadata == {"tag": "x"} for c in chunks)
        assert len({c.timestamp for c in chunks}) == 1
        assert len({c.id for c in chunks}) == len(chunks)

    def test_windows_advance_by_size_minus_overlap(self):
        text = string.ascii_lowercase * 40  # no natural boundaries
        chunks = chunk_text(text, ChunkOptions(chunk_size=100, chunk_overlap=20))

        assert [c.offset for c in chunks] == list(range(0, len(text), 80))
        for chunk in chunks:
            assert chunk.text == text[chunk.offset:chunk.offset + 100]

    def test_non_overlap_regions_reconstruct_text(self):
        text = string.ascii_lowercase * 40
        step = 80
        chunks = chunk_text(text, ChunkOptions(chunk_size=100, chunk_overlap=20))

        assert "".join(c.text[:step] for c in chunks) == text

    def test_window_trimmed_to_paragraph_break(self):
        text = "a" * 80 + "\n\n" + "b" * 200
        chunks = chunk_text(text, ChunkOptions(chunk_size=100, chunk_overlap=0))

        assert chunks[0].text == "a" * 80
        assert chunks[1].offset == 100

    def test_sentence_boundary_used_when_no_newline(self):
        text = "x" * 85 + ". " + "y" * 200
        chunks = chunk_text(text, ChunkOptions(chunk_size=100, chunk_overlap=0))

        assert chunks[0].text == "x" * 85 + "."

    def test_boundary_outside_last_quarter_ignored(self):
        text = "a" * 10 + "\n\n" + "b" * 300
        chunks = chunk_text(text, ChunkOptions(chunk_size=100, chunk_overlap=0))

        assert len(chunks[0].text) == 100

    def test_overlap_not_smaller_than_size_rejected(self):
        with pytest.raises(ValueError, match="chunk_overlap"):
            chunk_text("z" * 200, ChunkOptions(chunk_size=50, chunk_overlap=50))

    def test_chunks_keep_source_order(self):
        text = " ".join(f"sentence{i}." for i in range(200))
        chunks = chunk_text(text, ChunkOptions(chunk_size=120, chunk_overlap=20))

        offsets = [c.offset for c in chunks]
        assert offsets == sorted(offsets)
        for chunk in chunks:
            assert chunk.text in text[chunk.offset:chunk.offset + 120]


class TestChunkMarkdown:
    """Markdown is chunked per header section."""

    def test_split_by_headers(self):
        content = "preamble\n# Title\nintro\n## Part\nbody\n"
        sections = split_by_headers(content)

        assert [s["header"] for s in sections] == ["", "Title", "Part"]
        assert sections[1]["content"].startswith("# Title")

    def test_no_headers_is_one_section(self):
        assert split_by_headers("just text") == [{"header": "", "content": "just text"}]

    def test_sections_tagged_with_header(self):
        content = "# Decisions\nUse X for caching\n\n\n\n## Followups\nBenchmark X\n"
        chunks = chunk_markdown(content, ChunkOptions(source_path="memory/2024-01-01.md"))

        assert [c.text for c in chunks] == ["# Decisions\nUse X for caching", "## Followups\nBenchmark X"]
        assert chunks[0].metadata == {"sectionHeader": "Decisions", "type": "markdown"}
        assert chunks[1].metadata["sectionHeader"] == "Followups"

    def test_caller_metadata_merged(self):
        chunks = chunk_markdown("# A\nbody", ChunkOptions(metadata={"origin": "sync"}))

        assert chunks[0].metadata == {"origin": "sync", "sectionHeader": "A", "type": "markdown"}


class TestChunkConversation:
    """Conversation transcripts."""

    def test_format_conversation(self):
        messages = [
            {"role": "user", "content": "Where do we cache?"},
            {"role": "assistant", "content": "In Redis."},
            {"role": "system", "content": "noted"},
        ]

        assert format_conversation(messages) == (
            "[User]: Where do we cache?\n\n[Assistant]: In Redis.\n\n[Assistant]: noted"
        )

    def test_conversation_metadata(self):
        messages = [{"role": "user", "content": "hello there"}, {"role": "assistant", "content": "hi"}]
        chunks = chunk_conversation(messages, ChunkOptions(session_key="abc"))

        assert len(chunks) == 1
        assert chunks[0].metadata == {"type": "conversation", "messageCount": 2}
        assert chunks[0].session_key == "abc"


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("你好你") == 2
