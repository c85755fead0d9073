"""
Attendance marking for admins and link-authenticated teachers.

One document per (class instance, student) pair, keyed
``{classInstanceId}_{studentId}``, so marking twice overwrites instead of
duplicating. Status ``none`` removes the record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.auth import ROLE_TEACHER, Caller
from core.errors import InvalidArgument, NotFound, PermissionDenied, Unauthenticated, require_fields
from core.logger import logger
from firestore.repositories import ATTENDANCE, DirectoryRepository, RepositoryFactory
from stats.events import DocumentChange
from teachers.links import validate_teacher_token

ATTENDANCE_STATUSES = ("present", "late", "absent", "excused")
CLEAR_STATUS = "none"

MARKED_BY_ADMIN = "admin"
MARKED_BY_TEACHER = "teacher"


def attendance_doc_id(class_instance_id: str, student_id: str) -> str:
    return f"{class_instance_id}_{student_id}"


def _resolve_marker(repositories, directory, caller: Optional[Caller], tenant_id: str, link_token):
    """Return (markedBy, markedByType) for the request, or raise."""
    if caller is not None:
        if not caller.can_access_tenant(tenant_id):
            raise PermissionDenied("Caller does not have access to this business")
        if caller.role == ROLE_TEACHER:
            # Session tokens live for months; the teacher must still be active
            teacher = repositories(tenant_id).get_teacher(caller.teacher_id) if caller.teacher_id else None
            if not teacher:
                raise NotFound("Teacher not found")
            if teacher.get("isActive") is False:
                raise PermissionDenied("Teacher account is inactive")
            return caller.teacher_id, MARKED_BY_TEACHER
        return caller.uid, MARKED_BY_ADMIN

    if link_token:
        link = validate_teacher_token(repositories, directory, link_token)
        if link.get("businessId") != tenant_id:
            raise PermissionDenied("Teacher does not have access to this business")
        return link.get("teacherId"), MARKED_BY_TEACHER

    raise Unauthenticated("Must be logged in or provide a teacher link token")


def mark_attendance(
    repositories: RepositoryFactory,
    directory: DirectoryRepository,
    payload: Dict[str, Any],
    caller: Optional[Caller] = None,
    task_queue=None,
) -> Dict[str, Any]:
    """
    Create, update or delete one attendance record.

    The resulting change is published to ``task_queue`` so the student's
    stats follow.
    """
    require_fields(payload, "classInstanceId", "studentId", "tenantId", "status")
    class_instance_id = payload["classInstanceId"]
    student_id = payload["studentId"]
    tenant_id = payload["tenantId"]
    status = str(payload["status"]).strip().lower()

    if status != CLEAR_STATUS and status not in ATTENDANCE_STATUSES:
        raise InvalidArgument(
            f"Invalid status {payload['status']!r}; expected one of "
            f"{', '.join(ATTENDANCE_STATUSES + (CLEAR_STATUS,))}"
        )

    marked_by, marked_by_type = _resolve_marker(
        repositories, directory, caller, tenant_id, payload.get("linkToken")
    )

    repository = repositories(tenant_id)
    doc_id = attendance_doc_id(class_instance_id, student_id)
    existing = repository.get_attendance(doc_id)

    if status == CLEAR_STATUS:
        repository.delete_attendance(doc_id)
        logger.info(f"Attendance {doc_id} deleted by {marked_by_type} {marked_by}")
        _publish(task_queue, tenant_id, doc_id, existing, None)
        return {"success": True, "action": "deleted", "attendanceId": doc_id}

    now = datetime.now(timezone.utc)
    data = {
        "classInstanceId": class_instance_id,
        "studentId": student_id,
        "status": status,
        "notes": payload.get("notes") or "",
        "markedBy": marked_by,
        "markedByType": marked_by_type,
        "updatedAt": now,
    }
    if existing is None:
        data["createdAt"] = now

    repository.set_attendance(doc_id, data)
    logger.info(f"Attendance {doc_id} marked {status} by {marked_by_type} {marked_by}")

    after = dict(existing or {})
    after.pop("id", None)
    after.update(data)
    _publish(task_queue, tenant_id, doc_id, existing, after)
    return {
        "success": True,
        "action": "created" if existing is None else "updated",
        "attendanceId": doc_id,
    }


def _publish(task_queue, tenant_id, doc_id, before, after) -> None:
    if task_queue is None:
        return
    task_queue.publish(
        DocumentChange(
            tenant_id=tenant_id,
            collection=ATTENDANCE,
            document_id=doc_id,
            before=before,
            after=after,
        )
    )
