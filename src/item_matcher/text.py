"""
Text normalization shared by the cache and the index.
"""

from __future__ import annotations

import hashlib


def normalize_text(text: str) -> str:
    """Collapse whitespace, trim and case-fold *text*."""
    return " ".join(text.split()).casefold()


def text_key(normalized: str) -> str:
    """Stable cache key for already-normalized text."""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
