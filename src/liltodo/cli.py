"""Typer CLI for liltodo."""

from __future__ import annotations

import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from liltodo import persistence
from liltodo.config import DEFAULT_DESCRIPTION, DEFAULT_PRIORITY, Settings
from liltodo.errors import ConfigurationError, InvalidRootError, LiltodoError
from liltodo.logging_setup import setup_logging
from liltodo.models import ListOptions, Patch, Task
from liltodo.patch import split_tag_exprs
from liltodo.query import format_filter, format_order, parse_filter, parse_order
from liltodo.taskdb import TaskDB

app = typer.Typer(
    name="liltodo",
    help="Personal task tracker keeping one flat file per task.",
    no_args_is_help=True,
)
console = Console()

ArchiveOpt = Annotated[bool, typer.Option("--archive", help="Work on archived tasks")]


def _complete_task_id(ctx: typer.Context, incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and title.

    Reads the task directory given with --root, else the configured one.
    """
    try:
        root = completion_root(ctx.find_root().params.get("root"))
        if not persistence.is_storage_root(root):
            return []
        index = persistence.load_index(root)
    except (LiltodoError, OSError):
        return []

    results: list[str] = []
    q = incomplete.lower()
    for tid, entry in index.items():
        title = entry.get("title", "")
        if q in tid or q in title.lower():
            # title first so shell prefix matching works: "Buy milk (3)"
            results.append(f"{title} ({tid})")
    return results


def completion_root(root_option: Path | str | None) -> Path:
    if root_option:
        return Path(root_option).expanduser()
    return Settings.from_env().root


TaskIdArg = Annotated[str, typer.Argument(autocompletion=_complete_task_id, help="Task ID")]


def _parse_task_id(task_id_arg: str) -> int:
    """Extract the ID if the user used the autocompleted 'Title (ID)' format."""
    if "(" in task_id_arg and task_id_arg.endswith(")"):
        task_id_arg = task_id_arg.split("(")[-1].strip(")")
    task_id_arg = task_id_arg.strip()
    if not task_id_arg.isdecimal():
        console.print(f"[red]Invalid task ID '{task_id_arg}'.[/red]")
        raise typer.Exit(1)
    return int(task_id_arg)


def _get_db(ctx: typer.Context) -> TaskDB:
    settings: Settings = ctx.obj
    try:
        return TaskDB(settings.root)
    except InvalidRootError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)


def _require_task(db: TaskDB, task_id: int, archive: bool) -> None:
    if not db.exists(task_id, archive=archive):
        console.print("[red]No such task![/red]")
        raise typer.Exit(1)


def _read_raw(file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    path = Path(file)
    if not path.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Turn engine errors into a red message and exit code 1."""
    try:
        yield
    except LiltodoError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    root: Annotated[
        Optional[Path],
        typer.Option("--root", "-r", help="Task directory (default: $LILTODO_DIR or ~/.liltodo)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")] = False,
) -> None:
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)
    if root is not None:
        settings.root = root.expanduser()
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)
    ctx.obj = settings


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the task directory (it must be empty or already a task directory)."""
    db = _get_db(ctx)
    console.print(f"[green]Task directory ready: {db.root}[/green]")


@app.command()
def add(
    ctx: typer.Context,
    title: Annotated[Optional[list[str]], typer.Argument(help="Task title")] = None,
    pri: Annotated[str, typer.Option("--pri", "-p", help="Priority")] = DEFAULT_PRIORITY,
    tags: Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Tag (repeatable)")] = None,
    description: Annotated[str, typer.Option("--description", "-d", help="Free text description")] = DEFAULT_DESCRIPTION,
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Read the whole record from a file, or - for stdin")] = None,
    archive: ArchiveOpt = False,
) -> None:
    """Add a new task and print its ID."""
    db = _get_db(ctx)
    with _reporting_errors():
        if file:
            tid = db.create(_read_raw(file), archive=archive, raw=True)
            title_str = db.read(tid, archive=archive).title
        else:
            title_str = " ".join(title or []).strip()
            if not title_str:
                console.print("[red]Give a title, or a record with --file.[/red]")
                raise typer.Exit(1)
            tid = db.create(
                Patch(title=title_str, pri=pri, tags=tags or [], description=description),
                archive=archive,
            )
    console.print(f"[green]Added '{escape(title_str)}' as {tid}[/green]")


@app.command()
def show(
    ctx: typer.Context,
    task_id: TaskIdArg,
    raw: Annotated[bool, typer.Option("--raw", help="Print the record file as stored")] = False,
    archive: ArchiveOpt = False,
) -> None:
    """Show all details for a single task."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        _require_task(db, tid, archive)
        if raw:
            typer.echo(db.read(tid, archive=archive, raw=True))
            return
        t: Task = db.read(tid, archive=archive)

    console.print(f"\n[bold]{t.id}[/bold]  {escape(t.title)}", highlight=False)
    console.print(f"  Priority:   {escape(t.pri)}", highlight=False)
    console.print(f"  Tags:       {escape(' '.join(t.tags)) or 'none'}", highlight=False)
    if archive:
        console.print("  [dim]archived[/dim]")
    if t.description:
        console.print("\n  [dim]── Description ──[/dim]")
        for line in t.description.splitlines():
            console.print(f"  {line}", markup=False, highlight=False)
    console.print()


@app.command("list")
def list_tasks(
    ctx: typer.Context,
    filter_expr: Annotated[
        Optional[str],
        typer.Option("--filter", "-f", help="'& t1 t2' all tags, '| t1 t2' any tag, '/ regex' title match"),
    ] = None,
    order_expr: Annotated[
        Optional[str],
        typer.Option("--order", "-o", help="Columns to sort by, '-' prefix for descending (e.g. '-pri id')"),
    ] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-l", help="Show at most this many tasks")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="No limit")] = False,
    archive: ArchiveOpt = False,
) -> None:
    """List tasks, filtered and ordered."""
    settings: Settings = ctx.obj
    try:
        task_filter = parse_filter(filter_expr or "")
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    options = ListOptions(
        archive=archive,
        filter=task_filter,
        order=parse_order(order_expr if order_expr is not None else settings.order),
        limit=None if show_all else (limit if limit is not None else settings.limit),
    )

    db = _get_db(ctx)
    with _reporting_errors():
        try:
            tasks = db.list(options)
        except re.error as e:
            console.print(f"[red]Bad regex: {escape(str(e))}[/red]")
            raise typer.Exit(1)

    if not tasks:
        console.print("No tasks found.")
        return

    table = Table(title="Archived tasks" if archive else "Tasks")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Pri")
    table.add_column("Tags")
    for t in tasks:
        table.add_row(str(t.id), escape(t.title), escape(t.pri), escape(" ".join(t.tags)))
    console.print(table)

    footer = [f"order: {format_order(options.order) or 'none'}"]
    if options.filter.params:
        footer.append(f"filter: {format_filter(options.filter)}")
    if options.limit is not None:
        footer.append(f"limit: {options.limit}")
    console.print(f"[dim]{escape('  '.join(footer))}[/dim]", highlight=False)


@app.command()
def tags(ctx: typer.Context, archive: ArchiveOpt = False) -> None:
    """List every tag in use."""
    db = _get_db(ctx)
    with _reporting_errors():
        for tag in db.list_tags(archive=archive):
            typer.echo(tag)


@app.command(context_settings={"ignore_unknown_options": True})
def tag(
    ctx: typer.Context,
    task_id: TaskIdArg,
    exprs: Annotated[list[str], typer.Argument(help="Tags to add; prefix a tag with - to remove it")],
    archive: ArchiveOpt = False,
) -> None:
    """Add and remove tags in one go, e.g. `liltodo tag 3 work -home`."""
    tid = _parse_task_id(task_id)
    add_tags, remove_tags = split_tag_exprs(exprs)
    db = _get_db(ctx)
    with _reporting_errors():
        _require_task(db, tid, archive)
        t = db.update(tid, Patch(tags=add_tags, detags=remove_tags), archive=archive)
    console.print(f"[green]Tags of {tid}: {escape(' '.join(t.tags)) or 'none'}[/green]", highlight=False)


@app.command()
def pri(
    ctx: typer.Context,
    task_id: TaskIdArg,
    value: Annotated[str, typer.Argument(help="New priority")],
    archive: ArchiveOpt = False,
) -> None:
    """Set a task's priority."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        _require_task(db, tid, archive)
        db.update(tid, Patch(pri=value), archive=archive)
    console.print(f"[green]Set priority of {tid} to {value}.[/green]", highlight=False)


@app.command()
def update(
    ctx: typer.Context,
    task_id: TaskIdArg,
    title: Annotated[Optional[str], typer.Option(help="New title")] = None,
    pri: Annotated[Optional[str], typer.Option("--pri", "-p", help="New priority")] = None,
    description: Annotated[Optional[str], typer.Option("--description", "-d", help="New description")] = None,
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Merge a record read from a file, or - for stdin")] = None,
    archive: ArchiveOpt = False,
) -> None:
    """Update fields of an existing task."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        _require_task(db, tid, archive)
        if file:
            db.update(tid, _read_raw(file), archive=archive, raw=True)
        else:
            db.update(tid, Patch(title=title, pri=pri, description=description), archive=archive)
    console.print(f"[green]Updated {tid}.[/green]")


@app.command()
def delete(
    ctx: typer.Context,
    task_id: TaskIdArg,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    archive: ArchiveOpt = False,
) -> None:
    """Delete a task completely."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        _require_task(db, tid, archive)
        t = db.read(tid, archive=archive)
        if not yes and not typer.confirm(f'Delete "{t.title}"?'):
            console.print("Cancelled.")
            return
        db.delete(tid, archive=archive)
    console.print(f"[green]Deleted {tid}.[/green]")


@app.command("archive")
def archive_task(ctx: typer.Context, task_id: TaskIdArg) -> None:
    """Move a task to the archive."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        if not db.archive(tid):
            console.print("[red]No such task![/red]")
            raise typer.Exit(1)
    console.print(f"[green]Archived {tid}.[/green]")


@app.command("unarchive")
def unarchive_task(ctx: typer.Context, task_id: TaskIdArg) -> None:
    """Move an archived task back to the active tasks."""
    tid = _parse_task_id(task_id)
    db = _get_db(ctx)
    with _reporting_errors():
        if not db.unarchive(tid):
            console.print("[red]No such task in the archive![/red]")
            raise typer.Exit(1)
    console.print(f"[green]Unarchived {tid}.[/green]")


@app.command()
def reindex(ctx: typer.Context) -> None:
    """Rebuild both indexes from the task files. Run after editing files by hand."""
    db = _get_db(ctx)
    report = db.reindex()
    console.print(
        f"[green]Reindexed {report.indexed['active']} active and "
        f"{report.indexed['archive']} archived tasks.[/green]"
    )
    for name in report.degraded:
        console.print(f"  [yellow]Malformed record: {name}[/yellow]")
    for name in report.skipped:
        console.print(f"  [yellow]Skipped (not a task): {name}[/yellow]")


if __name__ == "__main__":
    app()
