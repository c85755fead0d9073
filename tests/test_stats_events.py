import pytest

from conftest import TENANT
from core.errors import InvalidArgument
from stats.aggregator import StatsAggregator
from stats.events import DocumentChange, affected_students, dispatch_change


def _instance_change(before, after):
    return DocumentChange(
        tenant_id=TENANT,
        collection="classInstances",
        document_id="c1",
        before={"studentIds": before, "date": "2025-01-10"} if before is not None else None,
        after={"studentIds": after, "date": "2025-01-11"} if after is not None else None,
    )


def test_roster_change_affects_added_and_removed_students_only():
    change = _instance_change(["B", "D"], ["A", "C", "D"])

    assert affected_students(change) == {"A", "B", "C"}


def test_field_only_edit_affects_nobody():
    assert affected_students(_instance_change(["A", "B"], ["B", "A"])) == set()


def test_created_and_deleted_instances_affect_whole_roster():
    assert affected_students(_instance_change(None, ["A", "B"])) == {"A", "B"}
    assert affected_students(_instance_change(["A"], None)) == {"A"}


@pytest.mark.parametrize("collection", ["attendance", "enrollments"])
def test_attendance_and_enrollment_changes_use_new_then_old_student(collection):
    created = DocumentChange(TENANT, collection, "d1", before=None, after={"studentId": "s1"})
    deleted = DocumentChange(TENANT, collection, "d1", before={"studentId": "s2"}, after=None)
    orphan = DocumentChange(TENANT, collection, "d1", before={}, after={"status": "present"})

    assert affected_students(created) == {"s1"}
    assert affected_students(deleted) == {"s2"}
    assert affected_students(orphan) == set()


def test_from_payload_validates_collection_and_ids():
    change = DocumentChange.from_payload(
        {"tenantId": TENANT, "collection": "attendance", "documentId": "c1_s1",
         "before": None, "after": {"studentId": "s1"}}
    )
    assert change.after == {"studentId": "s1"}

    with pytest.raises(InvalidArgument):
        DocumentChange.from_payload({"tenantId": TENANT, "collection": "students", "documentId": "x"})
    with pytest.raises(InvalidArgument):
        DocumentChange.from_payload({"collection": "attendance", "documentId": "x"})
    with pytest.raises(InvalidArgument):
        DocumentChange.from_payload(
            {"tenantId": TENANT, "collection": "attendance", "documentId": "x", "after": ["s1"]}
        )


def test_dispatch_change_recomputes_each_affected_student(store):
    for student_id in ("A", "B", "C", "D"):
        store.add(TENANT, "students", student_id, name=student_id)
    store.add(TENANT, "classInstances", "c1", date="2025-01-10", studentIds=["A", "C", "D"])
    aggregator = StatsAggregator(store.factory())

    outcome = dispatch_change(aggregator, _instance_change(["B", "D"], ["A", "C", "D"]))

    assert outcome == {"recomputed": ["A", "B", "C"], "errors": []}
    assert store.student(TENANT, "A")["stats"]["firstClassId"] == "c1"
    assert store.student(TENANT, "B")["stats"]["totalClasses"] == 0
    assert "stats" not in store.student(TENANT, "D")


def test_dispatch_change_reports_failures(store):
    store.add(TENANT, "students", "A", name="A")
    aggregator = StatsAggregator(store.factory())

    outcome = dispatch_change(aggregator, _instance_change([], ["A", "ghost"]))

    assert outcome["recomputed"] == ["A"]
    assert [e["studentId"] for e in outcome["errors"]] == ["ghost"]
