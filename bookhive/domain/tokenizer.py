"""Text normalization shared by the token index and query-time matching.

Both sides must go through :func:`normalize`; a mismatch would make prefix
search silently return nothing.
"""

import re
import unicodedata
from typing import Iterable

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_TOKEN = re.compile(r"[a-z0-9]+")


def normalize(text) -> str:
    """NFD-decompose, strip combining marks, lowercase and trim."""
    decomposed = unicodedata.normalize("NFD", "" if text is None else str(text))
    return _COMBINING_MARKS.sub("", decomposed).lower().strip()


def tokenize(text) -> list[str]:
    """Return the distinct tokens of ``text`` in first-occurrence order."""
    return list(dict.fromkeys(_TOKEN.findall(normalize(text))))


def tokenize_many(texts: Iterable) -> set[str]:
    tokens: set[str] = set()
    for text in texts:
        tokens.update(tokenize(text))
    return tokens
