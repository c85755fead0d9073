from unittest.mock import MagicMock

import pytest

from conftest import TENANT
from firestore.listeners import ChangeListener, parse_document_path


def _doc(path, data):
    doc = MagicMock()
    doc.reference.path = path
    doc.to_dict.return_value = data
    return doc


def _change(kind, doc):
    change = MagicMock()
    change.type.name = kind
    change.document = doc
    return change


@pytest.fixture
def task_queue():
    return MagicMock()


@pytest.fixture
def listener(task_queue):
    return ChangeListener(MagicMock(), task_queue)


PATH = f"businesses/{TENANT}/attendance/c1_s1"


def test_parse_document_path():
    assert parse_document_path(PATH) == (TENANT, "attendance", "c1_s1")
    assert parse_document_path("teacherLinks/abc") is None
    assert parse_document_path(f"other/{TENANT}/attendance/x") is None


def test_start_watches_each_collection_group_once():
    client = MagicMock()
    listener = ChangeListener(client, MagicMock())

    listener.start()
    listener.start()

    names = [c.args[0] for c in client.collection_group.call_args_list]
    assert names == ["attendance", "enrollments", "classInstances"]

    listener.stop()
    assert client.collection_group.return_value.on_snapshot.return_value.unsubscribe.call_count == 3


def test_first_snapshot_only_primes_cache(listener, task_queue):
    callback = listener._callback_for("attendance")
    existing = _doc(PATH, {"studentId": "s1", "status": "absent"})

    callback([existing], [_change("ADDED", existing)], None)

    task_queue.publish.assert_not_called()


def test_modification_carries_previous_version(listener, task_queue):
    callback = listener._callback_for("attendance")
    callback([_doc(PATH, {"studentId": "s1", "status": "absent"})], [], None)

    updated = _doc(PATH, {"studentId": "s1", "status": "present"})
    callback([updated], [_change("MODIFIED", updated)], None)

    change = task_queue.publish.call_args.args[0]
    assert change.tenant_id == TENANT
    assert change.collection == "attendance"
    assert change.document_id == "c1_s1"
    assert change.before == {"studentId": "s1"}
    assert change.after == {"studentId": "s1", "status": "present"}


def test_added_then_removed(listener, task_queue):
    callback = listener._callback_for("attendance")
    callback([], [], None)

    doc = _doc(PATH, {"studentId": "s1"})
    callback([doc], [_change("ADDED", doc)], None)
    callback([], [_change("REMOVED", doc)], None)

    added, removed = [c.args[0] for c in task_queue.publish.call_args_list]
    assert added.before is None and added.after == {"studentId": "s1"}
    assert removed.before == {"studentId": "s1"} and removed.after is None


def test_publish_failure_does_not_break_listener(listener, task_queue):
    task_queue.publish.side_effect = [RuntimeError("queue down"), set()]
    callback = listener._callback_for("attendance")
    callback([], [], None)

    first = _doc(PATH, {"studentId": "s1"})
    second = _doc(f"businesses/{TENANT}/attendance/c2_s1", {"studentId": "s1"})
    callback([first, second], [_change("ADDED", first), _change("ADDED", second)], None)

    assert task_queue.publish.call_count == 2


def test_cache_keeps_only_roster_fields(listener, task_queue):
    path = f"businesses/{TENANT}/classInstances/c1"
    callback = listener._callback_for("classInstances")
    callback([_doc(path, {"studentIds": ["s1"], "notes": "x" * 1000, "date": "2025-01-10"})], [], None)

    assert listener._cache == {path: {"studentIds": ["s1"]}}

    updated = _doc(path, {"studentIds": ["s2"], "notes": "", "date": "2025-01-10"})
    callback([updated], [_change("MODIFIED", updated)], None)

    change = task_queue.publish.call_args.args[0]
    assert change.before == {"studentIds": ["s1"]}
    assert change.after["notes"] == ""
    assert listener._cache[path] == {"studentIds": ["s2"]}
