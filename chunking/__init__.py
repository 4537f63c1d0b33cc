"""
Chunking Module - Paragraph-aligned semantic chunking for retrieval

Splits the assembled text of a parsed PDF into token-bounded chunks that
keep paragraphs intact, classifies them, and links each chunk back to an
approximate source page.

Quick Start:
    from pdf_parser import parse_document
    from chunking import SemanticChunker, ChunkingConfig

    result = parse_document(pdf_bytes)
    chunker = SemanticChunker(ChunkingConfig(token_budget=500))
    chunks = chunker.chunk(result.full_text, pages=result.pages)
"""

__version__ = "1.0.0"

from .chunker import SemanticChunker
from .classifier import classify_chunk
from .models import (
    ChunkingConfig,
    ChunkingStats,
    ChunkType,
    PageMatch,
    TextChunk,
)
from .paragraph_splitter import clean_text, split_paragraphs
from .token_counter import count_tokens, estimate_tokens

__all__ = [
    "__version__",
    "SemanticChunker",
    "ChunkingConfig",
    "ChunkingStats",
    "ChunkType",
    "PageMatch",
    "TextChunk",
    "classify_chunk",
    "clean_text",
    "split_paragraphs",
    "count_tokens",
    "estimate_tokens",
]
