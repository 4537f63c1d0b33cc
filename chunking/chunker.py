"""
Semantic Chunker - Core chunking logic for the ingestion pipeline

Takes the assembled document text (all pages joined by blank lines) and
produces token-bounded chunks that never split a paragraph.

Algorithm:
1. Split the text into paragraphs on blank lines.
2. Greedily accumulate paragraphs while the running token estimate stays
   within the budget. The paragraph that would overflow starts the next
   chunk. A paragraph larger than the budget becomes its own chunk.
3. Classify each chunk (header, list, table, footer, paragraph).
4. Map each chunk back to a page by locating its leading characters in
   the page texts. This is approximate; the matching rule is recorded on
   the chunk as page_match.

Usage:
    from chunking import SemanticChunker, ChunkingConfig

    chunker = SemanticChunker(ChunkingConfig(token_budget=1000))
    chunks = chunker.chunk(result.full_text, pages=result.pages)
"""

import logging
import uuid
from typing import Optional, Protocol, Sequence

from .classifier import classify_chunk
from .models import ChunkingConfig, PageMatch, TextChunk
from .paragraph_splitter import clean_text, normalize_whitespace, split_paragraphs
from .token_counter import get_token_counter

logger = logging.getLogger(__name__)


class PageText(Protocol):
    """Anything with a page number and its text (e.g. ParsedPage)."""

    page_number: int
    text: str


class SemanticChunker:
    """
    Splits document text into paragraph-aligned, token-bounded chunks.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        self._count = get_token_counter(self.config.tokenizer)

    def chunk(
        self,
        full_text: str,
        token_budget: Optional[int] = None,
        pages: Sequence[PageText] = (),
    ) -> list[TextChunk]:
        """
        Chunk the full document text.

        Args:
            full_text: All page texts joined with blank lines.
            token_budget: Overrides config.token_budget when given.
            pages: Parsed pages used for approximate page provenance.

        Returns:
            Chunks in document order with consecutive chunk_index values.
        """
        budget = token_budget or self.config.token_budget
        paragraphs = [p for p in split_paragraphs(full_text) if clean_text(p)]
        if not paragraphs:
            return []

        groups = self._group_paragraphs(paragraphs, budget)
        page_index = [(p.page_number, normalize_whitespace(p.text)) for p in pages]

        chunks: list[TextChunk] = []
        for index, (group, tokens) in enumerate(groups):
            raw_text = "\n\n".join(group)
            text = "\n\n".join(clean_text(p) for p in group)
            page, match = self._locate_page(raw_text, page_index)
            chunks.append(TextChunk(
                id=str(uuid.uuid4()),
                text=text,
                page=page,
                chunk_index=index,
                token_count=tokens,
                type=classify_chunk(raw_text),
                page_match=match,
            ))

        logger.debug(f"Chunked {len(paragraphs)} paragraphs into {len(chunks)} chunks")
        return chunks

    # -------------------------------------------------------------------------
    # Internal methods
    # -------------------------------------------------------------------------

    def _group_paragraphs(
        self,
        paragraphs: list[str],
        budget: int,
    ) -> list[tuple[list[str], int]]:
        """Greedy accumulation; returns (paragraphs, token estimate) per chunk."""
        groups: list[tuple[list[str], int]] = []
        current: list[str] = []
        current_tokens = 0

        for paragraph in paragraphs:
            tokens = self._count(paragraph)
            if current and current_tokens + tokens > budget:
                groups.append((current, current_tokens))
                current = [paragraph]
                current_tokens = tokens
            else:
                current.append(paragraph)
                current_tokens += tokens

        if current:
            groups.append((current, current_tokens))

        oversized = sum(1 for group, tokens in groups if tokens > budget)
        if oversized:
            logger.info(f"{oversized} paragraph(s) exceed the token budget of {budget}")

        return groups

    def _locate_page(
        self,
        text: str,
        page_index: list[tuple[int, str]],
    ) -> tuple[int, PageMatch]:
        if not page_index:
            return 1, PageMatch.DEFAULT

        attempts = [
            (self.config.page_match_chars, PageMatch.PREFIX),
            (self.config.page_match_fallback_chars, PageMatch.SHORT_PREFIX),
        ]
        for length, match in attempts:
            needle = normalize_whitespace(text[:length])
            if not needle:
                continue
            for page_number, page_text in page_index:
                if needle in page_text:
                    return page_number or 1, match

        return page_index[0][0] or 1, PageMatch.DEFAULT
