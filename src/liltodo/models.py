"""Task, patch and listing-option models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class FilterKind(enum.StrEnum):
    NONE = "none"
    ALL = "all"
    ANY = "any"
    MATCH = "match"


class Direction(enum.StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class Task:
    """A single tracked item, stored as one flat file."""

    title: str = ""
    pri: str = ""
    tags: list[str] = field(default_factory=list)
    description: str | None = ""  # None when loaded from the index only
    id: int | None = None

    def to_index_entry(self) -> dict:
        return {
            "title": self.title,
            "pri": self.pri,
            "tags": list(self.tags),
        }

    @classmethod
    def from_index_entry(cls, task_id: int, d: dict) -> Task:
        return cls(
            id=task_id,
            title=d.get("title", ""),
            pri=str(d.get("pri", "")),
            tags=list(d.get("tags", [])),
            description=None,
        )


@dataclass
class Patch:
    """A partial update. Empty fields leave the existing value alone."""

    title: str | None = None
    pri: str | int | None = None
    tags: list[str] = field(default_factory=list)
    detags: list[str] = field(default_factory=list)
    description: str | None = None

    @classmethod
    def from_task(cls, task: Task) -> Patch:
        return cls(
            title=task.title,
            pri=task.pri,
            tags=list(task.tags),
            description=task.description,
        )


@dataclass(frozen=True)
class TaskFilter:
    """Tagged selection rule applied while listing."""

    kind: FilterKind = FilterKind.NONE
    params: tuple[str, ...] = ()

    @classmethod
    def all(cls, *tags: str) -> TaskFilter:
        return cls(FilterKind.ALL, tuple(tags))

    @classmethod
    def any(cls, *tags: str) -> TaskFilter:
        return cls(FilterKind.ANY, tuple(tags))

    @classmethod
    def match(cls, pattern: str) -> TaskFilter:
        return cls(FilterKind.MATCH, (pattern,))


@dataclass(frozen=True)
class OrderKey:
    column: str
    direction: Direction = Direction.ASC


@dataclass(frozen=True)
class ListOptions:
    """Caller-owned listing session: which root, filter, order and limit."""

    archive: bool = False
    filter: TaskFilter = field(default_factory=TaskFilter)
    order: tuple[OrderKey, ...] = ()
    limit: int | None = None
