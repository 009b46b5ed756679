"""Tests for the task database handle."""

import pytest

from liltodo.errors import CorruptIndexError, InvalidRootError, NotFoundError
from liltodo.models import Direction, ListOptions, OrderKey, Patch, Task, TaskFilter
from liltodo.taskdb import TaskDB


@pytest.fixture
def db(tmp_path):
    return TaskDB(tmp_path / "todo")


def milk():
    return Task(title="Buy milk", pri=3, tags=["errand"], description="2%")


class TestCreate:
    def test_sequential_ids(self, db):
        assert [db.create(Patch(title=f"Task {i}", pri="1")) for i in range(4)] == [1, 2, 3, 4]

    def test_ids_are_never_reused(self, db):
        first = db.create(Patch(title="a", pri="1"))
        db.delete(first)
        assert db.create(Patch(title="b", pri="1")) == 2

    def test_ids_shared_with_archive(self, db):
        db.create(Patch(title="a", pri="1"))
        assert db.create(Patch(title="b", pri="1"), archive=True) == 2
        assert db.exists(2, archive=True)
        assert not db.exists(2)

    def test_file_and_index_written(self, db):
        tid = db.create(milk())
        assert (db.root / str(tid)).read_text() == "Buy milk\n\n3 errand\n\n2%"
        assert db.exists(tid)

    def test_create_from_raw_text(self, db):
        tid = db.create("Call mom\n\n2 family\n\nSunday\n\nafter lunch", raw=True)
        t = db.read(tid)
        assert t.title == "Call mom"
        assert t.pri == "2"
        assert t.tags == ["family"]
        assert t.description == "Sunday\n\nafter lunch"

    def test_duplicate_tags_collapse(self, db):
        tid = db.create(Patch(title="t", pri="1", tags=["a", "b", "a"]))
        assert db.read(tid).tags == ["a", "b"]


class TestRead:
    def test_read_parsed_and_raw(self, db):
        tid = db.create(milk())
        t = db.read(tid)
        assert t.id == tid
        assert t.title == "Buy milk"
        assert db.read(str(tid), raw=True) == "Buy milk\n\n3 errand\n\n2%"

    def test_read_missing(self, db):
        with pytest.raises(NotFoundError):
            db.read(99)


class TestUpdate:
    def test_patch_keeps_other_fields(self, db):
        tid = db.create(milk())
        db.update(tid, Patch(pri=5))
        t = db.read(tid)
        assert t.title == "Buy milk"
        assert t.pri == "5"
        assert t.description == "2%"
        assert db.list()[0].pri == "5"

    def test_tags_and_detags(self, db):
        tid = db.create(Patch(title="t", pri="1", tags=["y", "z"]))
        db.update(tid, Patch(tags=["x"], detags=["y"]))
        assert db.read(tid).tags == ["z", "x"]
        assert db.list()[0].tags == ["z", "x"]

    def test_raw_update_merges(self, db):
        tid = db.create(Patch(title="old", pri="1", tags=["a"], description="d"))
        db.update(tid, "new\n\n2 b\n\n", raw=True)
        t = db.read(tid)
        assert t.title == "new"
        assert t.pri == "2"
        assert t.tags == ["a", "b"]
        assert t.description == "d"

    def test_update_unknown_id_creates_record(self, db):
        db.update(7, Patch(title="direct", pri="1"))
        assert db.exists(7)
        assert db.read(7).description == ""


class TestDelete:
    def test_delete_removes_index_then_file(self, db):
        tid = db.create(milk())
        db.delete(tid)
        assert not db.exists(tid)
        assert not (db.root / str(tid)).exists()

    def test_delete_missing_file(self, db):
        with pytest.raises(NotFoundError):
            db.delete(5)


class TestArchive:
    def test_round_trip_keeps_id_and_content(self, db):
        tid = db.create(milk())
        before = db.read(tid, raw=True)

        assert db.archive(tid) is True
        assert not db.exists(tid)
        assert db.exists(tid, archive=True)
        assert db.read(tid, archive=True, raw=True) == before
        assert not (db.root / str(tid)).exists()

        assert db.unarchive(tid) is True
        assert db.exists(tid)
        assert not db.exists(tid, archive=True)
        assert db.read(tid, raw=True) == before

    def test_missing_task_is_a_no_op(self, db):
        tid = db.create(milk())
        assert db.unarchive(tid) is False
        assert db.archive(42) is False
        assert db.exists(tid)

    def test_archived_task_listed_only_in_archive(self, db):
        keep = db.create(Patch(title="keep", pri="1"))
        gone = db.create(Patch(title="gone", pri="1"))
        db.archive(gone)
        assert [t.id for t in db.list()] == [keep]
        assert [t.id for t in db.list(ListOptions(archive=True))] == [gone]


class TestList:
    def test_filter_order_limit(self, db):
        db.create(Patch(title="a", pri="9", tags=["x", "y"]))
        db.create(Patch(title="b", pri="10", tags=["x"]))
        db.create(Patch(title="c", pri="1", tags=["y", "x", "z"]))

        both = db.list(ListOptions(filter=TaskFilter.all("x", "y")))
        assert [t.id for t in both] == [1, 3]

        by_pri = db.list(ListOptions(order=(OrderKey("pri", Direction.DESC),)))
        assert [t.id for t in by_pri] == [2, 1, 3]

        top = db.list(ListOptions(order=(OrderKey("pri", Direction.DESC),), limit=1))
        assert [t.title for t in top] == ["b"]

    def test_list_tags(self, db):
        db.create(Patch(title="a", pri="1", tags=["x", "y"]))
        db.create(Patch(title="b", pri="1", tags=["y", "z"]))
        db.create(Patch(title="c", pri="1", tags=["old"]), archive=True)
        assert db.list_tags() == ["x", "y", "z"]
        assert db.list_tags(archive=True) == ["old"]

    def test_corrupt_index(self, db):
        (db.root / "index").write_text("{oops")
        with pytest.raises(CorruptIndexError):
            db.list()

    @pytest.mark.parametrize("content", [b"\xff\xfe{garbage", b'{"1": 5}', b'{"x": {}}'])
    def test_unusable_index(self, db, content):
        db.create(milk())
        (db.root / "index").write_bytes(content)
        with pytest.raises(CorruptIndexError):
            db.list()
        with pytest.raises(CorruptIndexError):
            db.exists(1)

        db.reindex()
        assert [t.title for t in db.list()] == ["Buy milk"]


class TestReindex:
    def test_file_deleted_by_hand(self, db):
        tid = db.create(milk())
        (db.root / str(tid)).unlink()
        assert db.exists(tid)

        db.reindex()
        assert not db.exists(tid)
        assert db.list() == []

    def test_file_edited_by_hand(self, db):
        tid = db.create(milk())
        (db.root / str(tid)).write_text("Buy oat milk\n\n1 errand vegan\n\n")
        assert db.list()[0].title == "Buy milk"

        db.reindex()
        (t,) = db.list()
        assert (t.title, t.pri, t.tags) == ("Buy oat milk", "1", ["errand", "vegan"])

    def test_index_matches_files_after_reindex(self, db):
        for i in range(3):
            db.create(Patch(title=f"t{i}", pri=str(i)))
        db.archive(2)
        (db.root / "index").write_text("garbage")
        (db.root / "9").write_text("Stray\n\n4\n\n")

        db.reindex()

        active = {str(t.id) for t in db.list()}
        archived = {str(t.id) for t in db.list(ListOptions(archive=True))}
        assert active == {"1", "3", "9"}
        assert archived == {"2"}
        for tid in active:
            assert (db.root / tid).is_file()


class TestSingleWriter:
    def test_two_handles_on_one_root_share_state(self, tmp_path):
        a = TaskDB(tmp_path / "todo")
        b = TaskDB(tmp_path / "todo")
        assert a.create(Patch(title="from a", pri="1")) == 1
        assert b.create(Patch(title="from b", pri="1")) == 2
        assert [t.title for t in a.list()] == ["from a", "from b"]

    def test_stale_counter_write_is_last_writer_wins(self, db):
        # No locking: a writer that read the counter before another one
        # bumped it hands out the same id again.
        (db.root / "counter").write_text("0")
        db.create(Patch(title="first", pri="1"))
        (db.root / "counter").write_text("0")
        assert db.create(Patch(title="second", pri="1")) == 1
        assert db.read(1).title == "second"


def test_invalid_root(tmp_path):
    (tmp_path / "notes.txt").write_text("hello")
    with pytest.raises(InvalidRootError):
        TaskDB(tmp_path)


def test_end_to_end(tmp_path):
    db = TaskDB(tmp_path / "D")

    assert db.create(milk()) == 1
    (t,) = db.list()
    assert (t.id, t.title, t.pri, t.tags) == (1, "Buy milk", "3", ["errand"])
    assert db.read(1).description == "2%"

    db.update(1, Patch(pri=5))
    t = db.read(1)
    assert t.title == "Buy milk"
    assert t.pri == "5"

    db.archive(1)
    assert not db.exists(1, archive=False)
    assert db.exists(1, archive=True)

    db.delete(1, archive=True)
    assert db.list(ListOptions(archive=True)) == []
