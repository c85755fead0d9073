"""
Document-change messages and the students they affect.

A change to an attendance record or an enrollment affects the one student it
names. A change to a class instance affects only the students that joined or
left its roster; edits that keep ``studentIds`` the same affect nobody.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from core.errors import InvalidArgument, require_fields
from core.logger import logger
from firestore.repositories import ATTENDANCE, CLASS_INSTANCES, ENROLLMENTS

WATCHED_COLLECTIONS = (ATTENDANCE, ENROLLMENTS, CLASS_INSTANCES)


@dataclass(frozen=True)
class DocumentChange:
    """One write to a watched document; ``before``/``after`` is None on create/delete."""

    tenant_id: str
    collection: str
    document_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DocumentChange":
        require_fields(payload, "tenantId", "collection", "documentId")
        collection = payload["collection"]
        if collection not in WATCHED_COLLECTIONS:
            raise InvalidArgument(
                f"Unsupported collection {collection!r}; expected one of {', '.join(WATCHED_COLLECTIONS)}"
            )
        before = payload.get("before")
        after = payload.get("after")
        for name, value in (("before", before), ("after", after)):
            if value is not None and not isinstance(value, dict):
                raise InvalidArgument(f"{name} must be an object or null")
        return cls(
            tenant_id=payload["tenantId"],
            collection=collection,
            document_id=payload["documentId"],
            before=before,
            after=after,
        )


def _roster(data: Optional[Dict[str, Any]]) -> Set[str]:
    if not data:
        return set()
    return {sid for sid in (data.get("studentIds") or []) if sid}


def affected_students(change: DocumentChange) -> Set[str]:
    """Students whose stats may be stale after ``change``."""
    if change.collection == CLASS_INSTANCES:
        return _roster(change.before) ^ _roster(change.after)

    if change.collection in (ATTENDANCE, ENROLLMENTS):
        student_id = (change.after or {}).get("studentId") or (change.before or {}).get("studentId")
        return {student_id} if student_id else set()

    return set()


def dispatch_change(aggregator, change: DocumentChange) -> Dict[str, Any]:
    """
    Recompute every affected student concurrently and wait for all of them.

    Returns ``{"recomputed": [...], "errors": [{"studentId", "errorMessage"}]}``.
    """
    students = sorted(affected_students(change))
    outcome = {"recomputed": [], "errors": []}
    if not students:
        logger.debug(
            f"No stats affected by {change.collection}/{change.document_id} in tenant {change.tenant_id}"
        )
        return outcome

    with ThreadPoolExecutor(max_workers=len(students)) as executor:
        futures = [
            (student_id, executor.submit(aggregator.recompute, change.tenant_id, student_id))
            for student_id in students
        ]
        for student_id, future in futures:
            try:
                future.result()
                outcome["recomputed"].append(student_id)
            except Exception as exc:
                logger.error(
                    f"Stats recompute for student {student_id} after "
                    f"{change.collection}/{change.document_id} failed: {exc}"
                )
                outcome["errors"].append({"studentId": student_id, "errorMessage": str(exc)})

    return outcome
