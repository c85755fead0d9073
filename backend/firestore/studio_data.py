"""
Firestore-backed repositories for tenant-scoped studio data.

Layout:
- businesses/{tenantId}/students, classInstances, attendance, enrollments, teachers
- teacherLinks/{linkToken}
- users/{uid}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore import FieldFilter

from core import config
from core.errors import Internal, NotFound
from core.logger import logger
from firestore.client import get_firestore_client
from firestore.repositories import (
    ATTENDANCE,
    CLASS_INSTANCES,
    ENROLLMENTS,
    STUDENTS,
    TEACHER_LINKS,
    TEACHERS,
    USERS,
    DirectoryRepository,
    StudioRepository,
)


def _doc_to_dict(snap) -> Dict[str, Any]:
    data = snap.to_dict() or {}
    data["id"] = snap.id
    return data


def _get_or_none(doc_ref) -> Optional[Dict[str, Any]]:
    snap = doc_ref.get()
    if not snap.exists:
        return None
    return _doc_to_dict(snap)


def _require_client(client):
    if client is None:
        client = get_firestore_client()
    if client is None:
        raise Internal("Firestore client not available")
    return client


class FirestoreStudioRepository(StudioRepository):
    """StudioRepository reading and writing ``businesses/{tenantId}/...``."""

    def __init__(self, tenant_id: str, client=None):
        super().__init__(tenant_id)
        self._client = _require_client(client)
        self._tenant_ref = self._client.collection(config.TENANTS_COLLECTION).document(tenant_id)

    def _collection(self, name: str):
        return self._tenant_ref.collection(name)

    def class_instances_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        query = self._collection(CLASS_INSTANCES).where(
            filter=FieldFilter("studentIds", "array_contains", student_id)
        )
        return [_doc_to_dict(doc) for doc in query.stream()]

    def attendance_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        query = self._collection(ATTENDANCE).where(filter=FieldFilter("studentId", "==", student_id))
        return [_doc_to_dict(doc) for doc in query.stream()]

    def enrollments_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        query = self._collection(ENROLLMENTS).where(filter=FieldFilter("studentId", "==", student_id))
        return [_doc_to_dict(doc) for doc in query.stream()]

    def get_class_instance(self, instance_id: str) -> Optional[Dict[str, Any]]:
        return _get_or_none(self._collection(CLASS_INSTANCES).document(instance_id))

    def list_student_ids(self) -> List[str]:
        # Only ids are needed; skip transferring document bodies
        return [doc.id for doc in self._collection(STUDENTS).select([]).stream()]

    def list_students(self, where: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        query = self._collection(STUDENTS)
        for field, value in (where or {}).items():
            query = query.where(filter=FieldFilter(field, "==", value))
        return [_doc_to_dict(doc) for doc in query.stream()]

    def write_stats(self, student_id: str, stats: Dict[str, Any]) -> None:
        doc_ref = self._collection(STUDENTS).document(student_id)
        try:
            doc_ref.update({"stats": stats})
        except gcp_exceptions.NotFound:
            raise NotFound(f"Student {student_id} not found in tenant {self.tenant_id}")

    def clear_stats(self, student_ids: List[str]) -> int:
        """Remove the ``stats`` field from the given students using batched writes."""
        cleared = 0
        batch = self._client.batch()
        pending = 0
        for student_id in student_ids:
            batch.update(
                self._collection(STUDENTS).document(student_id),
                {"stats": firestore.DELETE_FIELD},
            )
            pending += 1
            if pending >= config.FIRESTORE_BATCH_LIMIT:
                batch.commit()
                cleared += pending
                batch = self._client.batch()
                pending = 0
        if pending:
            batch.commit()
            cleared += pending
        logger.info(f"Cleared stats for {cleared} students in tenant {self.tenant_id}")
        return cleared

    def get_attendance(self, attendance_id: str) -> Optional[Dict[str, Any]]:
        return _get_or_none(self._collection(ATTENDANCE).document(attendance_id))

    def set_attendance(self, attendance_id: str, data: Dict[str, Any]) -> None:
        self._collection(ATTENDANCE).document(attendance_id).set(data, merge=True)

    def delete_attendance(self, attendance_id: str) -> None:
        self._collection(ATTENDANCE).document(attendance_id).delete()

    def get_teacher(self, teacher_id: str) -> Optional[Dict[str, Any]]:
        return _get_or_none(self._collection(TEACHERS).document(teacher_id))

    def set_teacher_link(self, teacher_id: str, link_token: str) -> None:
        try:
            self._collection(TEACHERS).document(teacher_id).update({"uniqueLink": link_token})
        except gcp_exceptions.NotFound:
            raise NotFound(f"Teacher {teacher_id} not found in tenant {self.tenant_id}")


class FirestoreDirectoryRepository(DirectoryRepository):
    """DirectoryRepository over the top-level ``teacherLinks`` and ``users`` collections."""

    def __init__(self, client=None):
        self._client = _require_client(client)

    def get_teacher_link(self, link_token: str) -> Optional[Dict[str, Any]]:
        return _get_or_none(self._client.collection(TEACHER_LINKS).document(link_token))

    def create_teacher_link(self, link_token: str, data: Dict[str, Any]) -> None:
        self._client.collection(TEACHER_LINKS).document(link_token).set(data)

    def touch_teacher_link(self, link_token: str) -> None:
        self._client.collection(TEACHER_LINKS).document(link_token).update(
            {"lastAccessed": firestore.SERVER_TIMESTAMP}
        )

    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        return _get_or_none(self._client.collection(USERS).document(uid))


def firestore_repository_factory(client=None):
    """Return a factory building FirestoreStudioRepository instances on one client."""

    def factory(tenant_id: str) -> StudioRepository:
        return FirestoreStudioRepository(tenant_id, client=client)

    return factory
