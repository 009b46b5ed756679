"""Flat-file persistence: storage skeleton, id counter, record files and index caches.

Every function takes the root it operates on explicitly. For a storage
directory ``R`` the active root is ``R`` and the archive root is ``R/archive``;
only ``R`` holds a counter.

Nothing here locks. Index and counter writes overwrite the whole file, so two
processes sharing one storage root can lose each other's updates. ``reindex``
is the repair path for a stale or broken index.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from liltodo import codec
from liltodo.errors import CorruptIndexError, InvalidRootError, NotFoundError
from liltodo.models import Task

COUNTER_FILE = "counter"
INDEX_FILE = "index"
ARCHIVE_DIR = "archive"

RESERVED_NAMES = frozenset({COUNTER_FILE, INDEX_FILE, ARCHIVE_DIR})

# (relative path, initial content or None for a directory)
SKELETON: list[tuple[str, str | None]] = [
    (COUNTER_FILE, "0"),
    (INDEX_FILE, "{}"),
    (ARCHIVE_DIR, None),
    (f"{ARCHIVE_DIR}/{INDEX_FILE}", "{}"),
]


# ---------------------------------------------------------------------------
# Storage root
# ---------------------------------------------------------------------------


def is_storage_root(path: Path) -> bool:
    return path.is_dir() and all((path / rel).exists() for rel, _ in SKELETON)


def open_storage_root(path: str | Path) -> Path:
    """Validate ``path`` as a storage root, creating the skeleton if it is empty.

    Raises InvalidRootError for an existing non-empty directory (or a plain
    file) that is missing part of the skeleton.
    """
    root = Path(path).expanduser()
    if root.exists():
        if is_storage_root(root):
            return root
        if not root.is_dir() or any(root.iterdir()):
            raise InvalidRootError(
                f"{root} must either be an existing task directory or an empty directory"
            )

    root.mkdir(parents=True, exist_ok=True)
    for rel, initial in SKELETON:
        target = root / rel
        if initial is None:
            target.mkdir(exist_ok=True)
        elif not target.exists():
            target.write_text(initial)
    logger.info("Created task storage skeleton in {}", root)
    return root


def archive_root(storage_root: Path) -> Path:
    return storage_root / ARCHIVE_DIR


# ---------------------------------------------------------------------------
# ID allocation
# ---------------------------------------------------------------------------


def next_id(storage_root: Path) -> int:
    """Bump the persisted counter and return the new value.

    Read-increment-write with no lock: concurrent callers on the same root can
    be handed the same id.
    """
    counter_file = storage_root / COUNTER_FILE
    value = int(counter_file.read_text().strip() or 0) + 1
    counter_file.write_text(str(value))
    logger.debug("Allocated task id {}", value)
    return value


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------


def record_path(root: Path, task_id: int | str) -> Path:
    return root / str(task_id)


def read_record(root: Path, task_id: int | str) -> str:
    try:
        return record_path(root, task_id).read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        raise NotFoundError(task_id, archive=root.name == ARCHIVE_DIR) from None


def write_record(root: Path, task_id: int | str, text: str) -> None:
    record_path(root, task_id).write_text(text, encoding="utf-8")


def delete_record(root: Path, task_id: int | str) -> None:
    try:
        record_path(root, task_id).unlink()
    except FileNotFoundError:
        raise NotFoundError(task_id, archive=root.name == ARCHIVE_DIR) from None


# ---------------------------------------------------------------------------
# Index cache
# ---------------------------------------------------------------------------


def load_index(root: Path) -> dict[str, dict]:
    """Return the {id string: {title, pri, tags}} mapping persisted for ``root``."""
    index_file = root / INDEX_FILE
    try:
        raw = json.loads(index_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptIndexError(f"Cannot parse {index_file}: {e}. Run reindex.") from e
    if not isinstance(raw, dict):
        raise CorruptIndexError(f"{index_file} does not hold a JSON object. Run reindex.")
    for key, entry in raw.items():
        if not key.isdecimal() or not isinstance(entry, dict):
            raise CorruptIndexError(f"{index_file} has a malformed entry for '{key}'. Run reindex.")
    return raw


def save_index(root: Path, index: dict[str, dict]) -> None:
    """Overwrite the whole index file."""
    text = json.dumps(index, indent=1, ensure_ascii=False) + "\n"
    (root / INDEX_FILE).write_text(text, encoding="utf-8")


def upsert_index(root: Path, task_id: int | str, task: Task) -> None:
    index = load_index(root)
    index[str(task_id)] = task.to_index_entry()
    save_index(root, index)


def remove_index(root: Path, task_id: int | str) -> None:
    index = load_index(root)
    index.pop(str(task_id), None)
    save_index(root, index)


def index_contains(root: Path, task_id: int | str) -> bool:
    """Membership in the cached index. May disagree with the files until reindex."""
    return str(task_id) in load_index(root)


# ---------------------------------------------------------------------------
# Reindex
# ---------------------------------------------------------------------------


@dataclass
class ReindexReport:
    """What a reindex pass found, per root label ("active" / "archive")."""

    indexed: dict[str, int] = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _entry_sort_key(path: Path) -> tuple[int, str]:
    # numeric ids in numeric order; other names sort first and get skipped
    if path.name.isdecimal():
        return int(path.name), ""
    return -1, path.name


def build_index(root: Path, report: ReindexReport, label: str) -> dict[str, dict]:
    index: dict[str, dict] = {}
    for entry in sorted(root.iterdir(), key=_entry_sort_key):
        name = entry.name
        if name in RESERVED_NAMES or name.startswith("."):
            continue
        if not entry.is_file() or not name.isdecimal():
            logger.warning("Skipping {} while reindexing: not a task record", entry)
            report.skipped.append(f"{label}/{name}")
            continue

        # undecodable bytes come back as U+FFFD
        text = entry.read_text(encoding="utf-8", errors="replace")
        if not codec.is_well_formed(text) or "\ufffd" in text:
            logger.warning("Record {} is malformed; indexing what could be parsed", entry)
            report.degraded.append(f"{label}/{name}")
        index[name] = codec.parse(text).to_index_entry()

    report.indexed[label] = len(index)
    return index


def reindex(storage_root: Path) -> ReindexReport:
    """Rebuild the active and archive indexes from the record files."""
    report = ReindexReport()
    for label, root in (("active", storage_root), ("archive", archive_root(storage_root))):
        save_index(root, build_index(root, report, label))
    logger.info(
        "Reindexed {}: {} active, {} archived",
        storage_root,
        report.indexed["active"],
        report.indexed["archive"],
    )
    return report
