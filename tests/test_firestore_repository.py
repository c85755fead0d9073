from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from conftest import TENANT
from core.errors import Internal, InvalidArgument, NotFound
from firestore.studio_data import FirestoreDirectoryRepository, FirestoreStudioRepository


def _snap(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def collection(client):
    """The sub-collection mock every ``businesses/{tenant}/<name>`` call resolves to."""
    return client.collection.return_value.document.return_value.collection.return_value


@pytest.fixture
def repo(client):
    return FirestoreStudioRepository(TENANT, client=client)


def test_repository_is_scoped_to_tenant(client, repo):
    client.collection.assert_called_with("businesses")
    client.collection.return_value.document.assert_called_with(TENANT)


def test_tenant_id_is_required(client):
    with pytest.raises(InvalidArgument):
        FirestoreStudioRepository("", client=client)


def test_missing_client_raises_internal():
    with patch("firestore.studio_data.get_firestore_client", return_value=None):
        with pytest.raises(Internal):
            FirestoreStudioRepository(TENANT)


def _filters(where_mock):
    return [
        (c.kwargs["filter"].field_path, c.kwargs["filter"].op_string, c.kwargs["filter"].value)
        for c in where_mock.call_args_list
    ]


def test_class_instances_query_uses_roster(repo, collection):
    collection.where.return_value.stream.return_value = [_snap("c1", {"studentIds": ["s1"]})]

    instances = repo.class_instances_for_student("s1")

    assert _filters(collection.where) == [("studentIds", "array_contains", "s1")]
    assert instances == [{"studentIds": ["s1"], "id": "c1"}]


def test_attendance_and_enrollment_queries(repo, collection):
    collection.where.return_value.stream.return_value = [_snap("a1", {"studentId": "s1"})]

    assert repo.attendance_for_student("s1")[0]["id"] == "a1"
    assert repo.enrollments_for_student("s1")[0]["id"] == "a1"
    assert _filters(collection.where) == [("studentId", "==", "s1"), ("studentId", "==", "s1")]


def test_list_student_ids_skips_document_bodies(repo, collection):
    collection.select.return_value.stream.return_value = [_snap("s1", {}), _snap("s2", {})]

    assert repo.list_student_ids() == ["s1", "s2"]
    collection.select.assert_called_once_with([])


def test_list_students_chains_equality_filters(repo, collection):
    query = collection.where.return_value
    query.where.return_value.stream.return_value = [_snap("s1", {"isActive": True})]

    students = repo.list_students({"isActive": True, "stats.totalClasses": 0})

    assert _filters(collection.where) == [("isActive", "==", True)]
    assert _filters(query.where) == [("stats.totalClasses", "==", 0)]
    assert students == [{"isActive": True, "id": "s1"}]


def test_get_class_instance_missing(repo, collection):
    collection.document.return_value.get.return_value = _snap("c9", None, exists=False)

    assert repo.get_class_instance("c9") is None


def test_write_stats_updates_only_stats_field(repo, collection):
    repo.write_stats("s1", {"totalClasses": 3})

    collection.document.assert_called_with("s1")
    collection.document.return_value.update.assert_called_once_with({"stats": {"totalClasses": 3}})


def test_write_stats_for_missing_student(repo, collection):
    collection.document.return_value.update.side_effect = gcp_exceptions.NotFound("no document")

    with pytest.raises(NotFound):
        repo.write_stats("ghost", {})


def test_clear_stats_commits_in_batches(client, repo):
    batch = client.batch.return_value

    cleared = repo.clear_stats([f"s{i}" for i in range(501)])

    assert cleared == 501
    assert batch.commit.call_count == 2
    assert batch.update.call_count == 501
    assert batch.update.call_args.args[1] == {"stats": firestore.DELETE_FIELD}


def test_set_attendance_merges(repo, collection):
    repo.set_attendance("c1_s1", {"status": "present"})

    collection.document.assert_called_with("c1_s1")
    collection.document.return_value.set.assert_called_once_with({"status": "present"}, merge=True)


def test_directory_reads_top_level_collections(client):
    directory = FirestoreDirectoryRepository(client)
    client.collection.return_value.document.return_value.get.return_value = _snap(
        "tok", {"teacherId": "t1", "businessId": TENANT}
    )

    link = directory.get_teacher_link("tok")
    directory.touch_teacher_link("tok")

    client.collection.assert_any_call("teacherLinks")
    assert link == {"teacherId": "t1", "businessId": TENANT, "id": "tok"}
    client.collection.return_value.document.return_value.update.assert_called_once_with(
        {"lastAccessed": firestore.SERVER_TIMESTAMP}
    )
