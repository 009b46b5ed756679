"""The task database handle: one storage root, the full storage API."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from liltodo import codec, persistence
from liltodo.models import ListOptions, Patch, Task
from liltodo.patch import apply_patch, dedupe
from liltodo.persistence import ReindexReport
from liltodo.query import run_query

TaskInput = Task | Patch | str


class TaskDB:
    """Reads and writes tasks under a storage root.

    Construction validates the root (creating the skeleton in an empty
    directory) and raises InvalidRootError otherwise. Every method works
    straight against the filesystem; nothing is cached between calls.
    Assumes a single writer per root.
    """

    def __init__(self, root: str | Path):
        self.root = persistence.open_storage_root(root)

    def _root(self, archive: bool) -> Path:
        return persistence.archive_root(self.root) if archive else self.root

    @staticmethod
    def _to_patch(value: TaskInput, raw: bool) -> Patch:
        if raw or isinstance(value, str):
            return Patch.from_task(codec.parse(value))
        if isinstance(value, Task):
            return Patch.from_task(value)
        return value

    # -- create / read / update / delete -------------------------------------

    def create(self, task: TaskInput, archive: bool = False, raw: bool = False) -> int:
        """Allocate a new id and store ``task`` under it. Returns the id."""
        task_id = persistence.next_id(self.root)
        self.update(task_id, task, archive=archive, raw=raw)
        logger.debug("Created task {}", task_id)
        return task_id

    def read(self, task_id: int | str, archive: bool = False, raw: bool = False) -> Task | str:
        """Return the full Task, or the record text when ``raw`` is set."""
        text = persistence.read_record(self._root(archive), task_id)
        if raw:
            return text
        return codec.parse(text, task_id=int(task_id))

    def update(self, task_id: int | str, patch: TaskInput, archive: bool = False, raw: bool = False) -> Task:
        """Merge ``patch`` into the stored task (or an empty one) and write it back."""
        root = self._root(archive)
        existing = self.read(task_id, archive=archive) if self.exists(task_id, archive=archive) else None

        task = apply_patch(self._to_patch(patch, raw), existing)
        task.id = int(task_id)
        if task.description is None:
            task.description = ""

        persistence.write_record(root, task_id, codec.build(task))
        persistence.upsert_index(root, task_id, task)
        logger.debug("Wrote task {} ({})", task_id, "archive" if archive else "active")
        return task

    def delete(self, task_id: int | str, archive: bool = False) -> None:
        """Drop the index entry, then the record file."""
        root = self._root(archive)
        persistence.remove_index(root, task_id)
        persistence.delete_record(root, task_id)
        logger.debug("Deleted task {} ({})", task_id, "archive" if archive else "active")

    def exists(self, task_id: int | str, archive: bool = False) -> bool:
        return persistence.index_contains(self._root(archive), task_id)

    # -- listing -------------------------------------------------------------

    def list(self, options: ListOptions | None = None) -> list[Task]:
        """List index entries (no descriptions) per the caller's options."""
        options = options or ListOptions()
        return run_query(persistence.load_index(self._root(options.archive)), options)

    def list_tags(self, archive: bool = False) -> list[str]:
        """Every tag in use, once, in index order."""
        tags: list[str] = []
        for task in self.list(ListOptions(archive=archive)):
            tags.extend(task.tags)
        return dedupe(tags)

    # -- archive -------------------------------------------------------------

    def archive(self, task_id: int | str) -> bool:
        return self.toggle_archive(task_id, to_archive=True)

    def unarchive(self, task_id: int | str) -> bool:
        return self.toggle_archive(task_id, to_archive=False)

    def toggle_archive(self, task_id: int | str, to_archive: bool) -> bool:
        """Move a task between the active and archive roots, keeping its id.

        Returns False without touching anything when the task is not in the
        source root's index.
        """
        if not self.exists(task_id, archive=not to_archive):
            return False

        source = self._root(not to_archive)
        target = self._root(to_archive)
        text = persistence.read_record(source, task_id)

        persistence.remove_index(source, task_id)
        persistence.delete_record(source, task_id)

        persistence.write_record(target, task_id, text)
        persistence.upsert_index(target, task_id, codec.parse(text))
        logger.debug("Moved task {} to {}", task_id, "archive" if to_archive else "active tasks")
        return True

    # -- repair --------------------------------------------------------------

    def reindex(self) -> ReindexReport:
        return persistence.reindex(self.root)
