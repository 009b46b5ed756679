"""Flat-file record format.

A record looks like::

    <title>

    <pri> <tag1> <tag2> ...

    <description, which may span several paragraphs>

Files with fewer than two blank-line boundaries still parse; the missing
parts come back empty.
"""

from __future__ import annotations

from liltodo.models import Task

SEPARATOR = "\n\n"


def is_well_formed(text: str) -> bool:
    return text.count(SEPARATOR) >= 2


def parse(text: str, task_id: int | None = None) -> Task:
    """Parse record text into a Task."""
    title, _, rest = text.partition(SEPARATOR)
    pri_line, _, description = rest.partition(SEPARATOR)

    pri, *tags = pri_line.split(" ")
    return Task(
        id=task_id,
        title=title,
        pri=pri,
        tags=[t for t in tags if t],
        description=description,
    )


def build(task: Task) -> str:
    """Render a Task as record text."""
    pri_line = " ".join([str(task.pri), *task.tags])
    return task.title + SEPARATOR + pri_line + SEPARATOR + (task.description or "")
