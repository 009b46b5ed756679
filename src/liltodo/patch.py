"""Merging partial updates into tasks."""

from __future__ import annotations

from liltodo.models import Patch, Task


def _present(value) -> bool:
    return value is not None and value != ""


def dedupe(items: list[str]) -> list[str]:
    """Drop repeats, keeping each item's first occurrence."""
    return list(dict.fromkeys(items))


def split_tag_exprs(exprs: list[str]) -> tuple[list[str], list[str]]:
    """Split ``["a", "-b"]`` into tags to add (``["a"]``) and to remove (``["b"]``)."""
    tags = [e for e in exprs if not e.startswith("-")]
    detags = [e[1:] for e in exprs if e.startswith("-") and len(e) > 1]
    return tags, detags


def apply_patch(patch: Patch, existing: Task | None = None) -> Task:
    """Return a new Task with ``patch`` merged over ``existing``.

    Tags are concatenated, deduplicated, and only then are ``patch.detags``
    removed, so a single patch can add and remove tags at once.
    """
    base = existing or Task(description=None)

    tags = dedupe(list(base.tags) + list(patch.tags))
    tags = [t for t in tags if t not in patch.detags]

    return Task(
        id=base.id,
        title=patch.title if _present(patch.title) else base.title,
        pri=str(patch.pri) if _present(patch.pri) else base.pri,
        tags=tags,
        description=patch.description if _present(patch.description) else base.description,
    )
