"""Transform stages for atomic document updates.

A pipeline is a sequence of pure functions ``Document -> Document``. The
collection applies it to the current document and writes the result in one
step, so derived fields can be computed from the post-change document.
Stages must not mutate their input.
"""

from datetime import datetime
from typing import Any, Callable, Iterable

Document = dict[str, Any]
Stage = Callable[[Document], Document]


def set_default(field: str, value: Any) -> Stage:
    """Set ``field`` only when it is missing or null."""

    def set_default(doc: Document) -> Document:
        if doc.get(field) is not None:
            return doc
        return {**doc, field: value}

    return set_default


def stamp_timestamps(now: datetime) -> Stage:
    """``created_at`` is first-write-wins; ``updated_at`` moves on every write."""

    def stamp_timestamps(doc: Document) -> Document:
        return {**doc, "created_at": doc.get("created_at") or now, "updated_at": now}

    return stamp_timestamps


def list_field(doc: Document, field: str) -> list:
    """Return ``doc[field]`` when it is a list, else an empty list."""
    value = doc.get(field)
    return list(value) if isinstance(value, list) else []


def describe(stages: Iterable[Stage]) -> list[str]:
    return [getattr(stage, "__name__", repr(stage)) for stage in stages]
