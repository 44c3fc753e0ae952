"""Tests for markdown fragment splitting."""

import re

import pytest

from note_rag.services.chunking import ChunkingService, fragment_id, split_markdown
from tests.conftest import make_settings


def _non_blank(text: str) -> str:
    return re.sub(r"\s+", "", text)


class TestSplitMarkdown:
    """Test the fragmenter on representative documents."""

    def test_empty_document(self):
        assert split_markdown("") == []
        assert split_markdown("   \n\n  \n") == []

    def test_prose_only(self):
        fragments = split_markdown("first paragraph\n\nsecond paragraph\n\n\n\nthird")
        assert [f.content for f in fragments] == ["first paragraph", "second paragraph", "third"]
        assert not any(f.is_code for f in fragments)

    def test_single_code_block(self):
        text = "```python\nprint('hi')\n\nprint('bye')\n```"
        fragments = split_markdown(text)
        assert len(fragments) == 1
        assert fragments[0].is_code is True
        assert fragments[0].content == text

    def test_mixed_document_keeps_order(self):
        text = "# T\n\npara one\n\n```go\ncode\n```\n\nafter"
        fragments = split_markdown(text)
        assert [(f.content, f.is_code) for f in fragments] == [
            ("# T", False),
            ("para one", False),
            ("```go\ncode\n```", True),
            ("after", False),
        ]

    def test_code_block_is_never_split(self):
        body = "\n\n".join(f"line {i} " + "x" * 80 for i in range(20))
        text = f"intro\n\n```\n{body}\n```\n\noutro"
        code = [f for f in split_markdown(text) if f.is_code]
        assert len(code) == 1
        assert len(code[0].content) > 500
        assert body in code[0].content

    def test_long_paragraph_sliced_without_overlap(self):
        paragraph = "".join(chr(ord("a") + i % 26) for i in range(1234))
        fragments = split_markdown(paragraph)
        assert [len(f.content) for f in fragments] == [500, 500, 234]
        assert "".join(f.content for f in fragments) == paragraph

    def test_slices_keep_inner_whitespace(self):
        paragraph = ("word " * 150).strip()
        fragments = split_markdown(paragraph)
        assert all(len(f.content) <= 500 for f in fragments)
        assert "".join(f.content for f in fragments) == paragraph

    def test_unterminated_fence_is_prose(self):
        fragments = split_markdown("```\nnot closed")
        assert [f.is_code for f in fragments] == [False]

    def test_custom_limit_from_settings(self):
        service = ChunkingService(make_settings(fragment_max_chars=10))
        fragments = service.split("abcdefghijklmnopqrstuvwxyz")
        assert [f.content for f in fragments] == ["abcdefghij", "klmnopqrst", "uvwxyz"]

    @pytest.mark.parametrize(
        "text",
        [
            "plain",
            "a\n\nb\n\n```\nc\n```",
            "```js\nx()\n```\n\n" + "y" * 1700 + "\n\nz",
            "lead ```inline``` tail\n\n\n```\nblock\n```",
        ],
    )
    def test_recovers_all_non_blank_content(self, text):
        fragments = split_markdown(text)
        assert _non_blank("".join(f.content for f in fragments)) == _non_blank(text)
        assert all(len(f.content) <= 500 for f in fragments if not f.is_code)
        assert all(f.content.strip() for f in fragments)


class TestFragmentId:
    """Test fragment identity."""

    def test_identity_is_sha1_of_content(self):
        assert fragment_id("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_same_split_same_identities(self):
        text = "alpha\n\n```\nbeta\n```\n\n" + "g" * 900
        first = [fragment_id(f.content) for f in split_markdown(text)]
        second = [fragment_id(f.content) for f in split_markdown(text)]
        assert first == second
        assert len(set(first)) == len(first)
