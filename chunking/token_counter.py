"""
Token Counter for the Chunking Pipeline

Two counting strategies:
- estimate_tokens: ceil(len(text) / 4), the budget rule used for chunking.
  Deterministic and free of external data.
- count_tokens: exact counts with tiktoken's cl100k_base encoding, for
  callers that want real token numbers against an OpenAI-style model.

Usage:
    from chunking.token_counter import estimate_tokens, count_tokens

    n = estimate_tokens("Net operating income rose 4%.")
    exact = count_tokens("Net operating income rose 4%.")
"""

import math
from typing import Callable

import tiktoken

CHARS_PER_TOKEN = 4

# Singleton encoder - initialized once, reused across calls.
_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Get or initialize the tiktoken encoder (singleton)."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def estimate_tokens(text: str) -> int:
    """
    Estimate the token count of a text as ceil(chars / 4).

    Args:
        text: The text to measure.

    Returns:
        Estimated number of tokens (0 for empty text).
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens(text: str) -> int:
    """
    Count the number of tokens in a text string with tiktoken.

    Args:
        text: The text to tokenize.

    Returns:
        Number of tokens.
    """
    if not text:
        return 0
    return len(_get_encoder().encode(text))


def get_token_counter(name: str) -> Callable[[str], int]:
    """Resolve a tokenizer name from ChunkingConfig to a counting function."""
    if name == "chars":
        return estimate_tokens
    if name == "tiktoken":
        return count_tokens
    raise ValueError(f"Unknown tokenizer: {name}")
