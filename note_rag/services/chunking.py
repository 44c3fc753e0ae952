"""Markdown-aware fragment splitting."""

import hashlib
import re
from typing import List

from langchain_text_splitters import CharacterTextSplitter

from note_rag.core.config import Settings
from note_rag.models.document import FragmentCandidate

DEFAULT_MAX_CHARS = 500

CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
BLANK_LINES_RE = re.compile(r"\n\n+")


def fragment_id(content: str) -> str:
    """
    Compute the stable identity of a fragment.

    Args:
        content: Fragment text.

    Returns:
        Hex SHA-1 of the content. Position and owning document play no part.
    """
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


def _slicer(max_chars: int) -> CharacterTextSplitter:
    # Empty separator splits per character, so merged chunks are exactly max_chars long.
    return CharacterTextSplitter(
        separator="",
        chunk_size=max_chars,
        chunk_overlap=0,
        length_function=len,
        strip_whitespace=False,
    )


def _paragraphs(text: str, slicer: CharacterTextSplitter, max_chars: int) -> List[FragmentCandidate]:
    text = text.strip()
    if not text:
        return []

    out = []
    for paragraph in BLANK_LINES_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        chunks = [paragraph] if len(paragraph) <= max_chars else slicer.split_text(paragraph)
        out.extend(
            FragmentCandidate(content=chunk, is_code=False)
            for chunk in chunks
            if chunk.strip()
        )
    return out


def split_markdown(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[FragmentCandidate]:
    """
    Split markdown into ordered code and prose fragments.

    Fenced code blocks are kept whole. Prose around them is split on blank
    lines and paragraphs longer than ``max_chars`` are cut into consecutive
    slices without overlap.

    Args:
        text: Raw markdown.
        max_chars: Maximum prose fragment length in characters.

    Returns:
        Fragment candidates in document order.
    """
    if not text:
        return []

    slicer = _slicer(max_chars)
    fragments: List[FragmentCandidate] = []
    last = 0
    for match in CODE_BLOCK_RE.finditer(text):
        if match.start() > last:
            fragments.extend(_paragraphs(text[last:match.start()], slicer, max_chars))
        code = match.group(0).strip()
        if code:
            fragments.append(FragmentCandidate(content=code, is_code=True))
        last = match.end()

    if last < len(text):
        fragments.extend(_paragraphs(text[last:], slicer, max_chars))

    return fragments


class ChunkingService:
    """Service for splitting documents into fragments."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the chunking service."""
        self.max_chars = settings.fragment_max_chars

    def split(self, content: str) -> List[FragmentCandidate]:
        """Split document content into fragment candidates."""
        return split_markdown(content, self.max_chars)
