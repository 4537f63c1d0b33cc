"""
Data Models for the Chunking Pipeline

Defines:
1. ChunkType - Classification of a chunk's content
2. PageMatch - How a chunk's source page was determined
3. ChunkingConfig - Token budget, page matching and tokenizer settings
4. TextChunk - A single retrieval chunk (terminal pipeline artifact)
5. ChunkingStats - Summary statistics over a chunk list

Design Principles:
- Pydantic v2 for validation and serialization (consistent with pdf_parser)
- One canonical chunk shape; storage-facing field aliases are produced
  only by TextChunk.to_record()

Usage:
    config = ChunkingConfig(token_budget=1000)
    chunks = SemanticChunker(config).chunk(full_text, pages=pages)
    stats = ChunkingStats.from_chunks(chunks)
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ChunkType(str, Enum):
    """Coarse content classification assigned to every chunk."""

    PARAGRAPH = "paragraph"
    LIST = "list"
    TABLE = "table"
    HEADER = "header"
    FOOTER = "footer"


class PageMatch(str, Enum):
    """
    Provenance of a chunk's page number.

    PREFIX: the chunk's leading characters were found in the page text
    SHORT_PREFIX: only the shorter fallback prefix was found
    DEFAULT: nothing matched, the first page was assumed
    """

    PREFIX = "prefix"
    SHORT_PREFIX = "short_prefix"
    DEFAULT = "default"


class ChunkingConfig(BaseModel):
    """
    Configuration for the semantic chunker.

    Token counts default to the ~4 characters per token estimate.
    """
    token_budget: int = Field(
        4000,
        description="Maximum tokens per chunk (a single oversized paragraph may exceed it)",
        ge=1,
    )
    page_match_chars: int = Field(
        80,
        description="Length of the chunk prefix searched for in page text",
        ge=1,
    )
    page_match_fallback_chars: int = Field(
        40,
        description="Shorter prefix used when the full prefix is not found",
        ge=1,
    )
    tokenizer: Literal["chars", "tiktoken"] = Field(
        "chars",
        description="'chars' estimates ceil(len/4); 'tiktoken' counts cl100k_base tokens",
    )


class TextChunk(BaseModel):
    """
    A token-bounded span of document text, the unit of retrieval.
    """
    id: str = Field(
        ...,
        description="Opaque identifier, unique within the document",
    )
    text: str = Field(
        ...,
        description="The chunk text content",
        min_length=1,
    )
    page: int = Field(
        ...,
        description="Approximate source page number (1-indexed)",
        ge=1,
    )
    chunk_index: int = Field(
        ...,
        description="Position of this chunk within the document (0-indexed)",
        ge=0,
    )
    token_count: int = Field(
        ...,
        description="Estimated number of tokens in this chunk",
        ge=0,
    )
    type: ChunkType = Field(
        ChunkType.PARAGRAPH,
        description="Content classification",
    )
    page_match: PageMatch = Field(
        PageMatch.DEFAULT,
        description="How the page number was derived",
    )

    model_config = {"frozen": True}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_record(self) -> dict[str, Any]:
        """
        Flat record for storage layers that expect the legacy column names.

        Both the canonical and the legacy names are present.
        """
        data = self.to_dict()
        data.update(
            chunk_id=self.id,
            content=self.text,
            page_number=self.page,
            tokens=self.token_count,
            chunk_type=self.type.value,
        )
        return data


class ChunkingStats(BaseModel):
    """Statistics about a list of chunks."""
    total_chunks: int = 0
    total_tokens: int = 0
    avg_chunk_tokens: float = 0.0
    min_chunk_tokens: int = 0
    max_chunk_tokens: int = 0
    oversized_chunks: int = 0
    chunks_by_type: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_chunks(
        cls,
        chunks: list[TextChunk],
        token_budget: int | None = None,
    ) -> "ChunkingStats":
        if not chunks:
            return cls()

        token_counts = [c.token_count for c in chunks]
        by_type: dict[str, int] = {}
        for chunk in chunks:
            by_type[chunk.type.value] = by_type.get(chunk.type.value, 0) + 1

        oversized = 0
        if token_budget is not None:
            oversized = sum(1 for t in token_counts if t > token_budget)

        return cls(
            total_chunks=len(chunks),
            total_tokens=sum(token_counts),
            avg_chunk_tokens=sum(token_counts) / len(token_counts),
            min_chunk_tokens=min(token_counts),
            max_chunk_tokens=max(token_counts),
            oversized_chunks=oversized,
            chunks_by_type=by_type,
        )
