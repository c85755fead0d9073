"""
Student statistics aggregation.

For one student the aggregator reads the class instances the student belongs
to, the student's attendance records and enrollments, derives the "first
class" / "first attendance" facts and the counters, and stores the result
as the ``stats`` field of the student document.

``compute_snapshot`` holds the derivation and performs no I/O apart from the
optional class-instance lookup it is handed. ``StatsAggregator`` wraps it
with repository reads and writes and is what the HTTP endpoint, the change
queue and the sync script all call.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from core import config
from core.errors import InvalidArgument
from core.logger import logger
from firestore.repositories import RepositoryFactory
from stats.dates import sort_key, to_utc_datetime

ATTENDED_STATUSES = ("present", "late")

InstanceLookup = Callable[[str], Optional[Dict[str, Any]]]


@dataclass
class StatsSnapshot:
    totalClasses: int = 0
    activeEnrollments: int = 0
    firstClassId: Optional[str] = None
    firstClassDate: Optional[datetime] = None
    firstClassBranchId: Optional[str] = None
    firstClassTeacherId: Optional[str] = None
    firstClassAttended: bool = False
    firstAttendanceId: Optional[str] = None
    firstAttendanceDate: Optional[datetime] = None
    firstAttendanceClassId: Optional[str] = None
    firstAttendanceBranchId: Optional[str] = None
    firstAttendanceTeacherId: Optional[str] = None
    lastUpdated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchResult:
    total: int = 0
    updated: int = 0
    errors: int = 0
    errorDetails: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "total": self.total,
            "updated": self.updated,
            "errors": self.errors,
            "errorDetails": list(self.errorDetails),
        }


def is_active_enrollment(enrollment: Dict[str, Any]) -> bool:
    """Enrollments carry their active flag as ``isActive``, ``active`` or ``status``."""
    if enrollment.get("isActive") is True or enrollment.get("active") is True:
        return True
    return str(enrollment.get("status") or "").lower() == "active"


def relevant_attendance(records: Iterable[Dict[str, Any]], policy: str) -> List[Dict[str, Any]]:
    """Attendance records that count towards the snapshot under ``policy``."""
    if policy == config.ATTENDANCE_POLICY_ATTENDED:
        return [r for r in records if r.get("status") in ATTENDED_STATUSES]
    return list(records)


def _attendance_date(record: Dict[str, Any]) -> Optional[datetime]:
    """Parsed ``date``, else the parsed ``createdAt`` (covers unparseable imported dates)."""
    return to_utc_datetime(record.get("date")) or to_utc_datetime(record.get("createdAt"))


def compute_snapshot(
    student_id: str,
    class_instances: List[Dict[str, Any]],
    attendance: List[Dict[str, Any]],
    enrollments: List[Dict[str, Any]],
    policy: str = None,
    lookup_instance: Optional[InstanceLookup] = None,
    now: Optional[datetime] = None,
) -> StatsSnapshot:
    """Derive the stats snapshot of one student from its source documents."""
    policy = policy or config.STATS_ATTENDANCE_POLICY
    snapshot = StatsSnapshot(
        totalClasses=len(class_instances),
        activeEnrollments=sum(1 for e in enrollments if is_active_enrollment(e)),
        lastUpdated=now or datetime.now(timezone.utc),
    )

    instances = sorted(class_instances, key=lambda i: sort_key(i.get("date"), i.get("id")))
    records = sorted(
        relevant_attendance(attendance, policy),
        key=lambda r: sort_key(_attendance_date(r), r.get("id")),
    )

    if instances:
        first_class = instances[0]
        snapshot.firstClassId = first_class.get("id")
        snapshot.firstClassDate = to_utc_datetime(first_class.get("date"))
        snapshot.firstClassBranchId = first_class.get("branchId") or None
        snapshot.firstClassTeacherId = first_class.get("teacherId") or None
        snapshot.firstClassAttended = any(
            r.get("classInstanceId") == snapshot.firstClassId for r in records
        )

    if records:
        first_att = records[0]
        class_id = first_att.get("classInstanceId") or None
        snapshot.firstAttendanceId = first_att.get("id")
        snapshot.firstAttendanceDate = _attendance_date(first_att)
        snapshot.firstAttendanceClassId = class_id

        att_class = next((i for i in instances if i.get("id") == class_id), None)
        # Student may have been removed from the instance since attending it
        if att_class is None and class_id and lookup_instance is not None:
            try:
                att_class = lookup_instance(class_id)
            except Exception as exc:
                logger.warning(
                    f"Error fetching class instance {class_id} for student {student_id}: {exc}"
                )
                att_class = None

        if att_class:
            snapshot.firstAttendanceBranchId = att_class.get("branchId") or None
            snapshot.firstAttendanceTeacherId = att_class.get("teacherId") or None

    return snapshot


class StatsAggregator:
    """Recomputes and stores student stats snapshots."""

    def __init__(
        self,
        repositories: RepositoryFactory,
        policy: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        policy = policy or config.STATS_ATTENDANCE_POLICY
        if policy not in config.ATTENDANCE_POLICIES:
            raise ValueError(f"Unknown attendance policy: {policy}")
        self._repositories = repositories
        self.policy = policy
        self.chunk_size = config.clamp_chunk_size(chunk_size)

    def recompute(self, tenant_id: str, student_id: str) -> StatsSnapshot:
        """
        Recompute and persist the stats snapshot of one student.

        Raises:
            InvalidArgument: tenant or student id missing
            NotFound: the student document does not exist
        """
        if not tenant_id:
            raise InvalidArgument("tenantId is required")
        if not student_id:
            raise InvalidArgument("studentId is required")

        repo = self._repositories(tenant_id)
        snapshot = compute_snapshot(
            student_id,
            repo.class_instances_for_student(student_id),
            repo.attendance_for_student(student_id),
            repo.enrollments_for_student(student_id),
            policy=self.policy,
            lookup_instance=repo.get_class_instance,
        )
        repo.write_stats(student_id, snapshot.to_dict())
        logger.debug(f"Updated stats for student {student_id} in tenant {tenant_id}")
        return snapshot

    def recompute_batch(
        self,
        tenant_id: str,
        student_ids: List[str],
        chunk_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Recompute many students, at most ``chunk_size`` at a time.

        A failing student is recorded in the result and never stops the rest.
        """
        if not tenant_id:
            raise InvalidArgument("tenantId is required")

        chunk_size = config.clamp_chunk_size(chunk_size or self.chunk_size)
        result = BatchResult(total=len(student_ids))
        if not student_ids:
            return result

        with ThreadPoolExecutor(max_workers=chunk_size) as executor:
            for start in range(0, len(student_ids), chunk_size):
                chunk = student_ids[start:start + chunk_size]
                futures = [
                    (student_id, executor.submit(self.recompute, tenant_id, student_id))
                    for student_id in chunk
                ]
                for student_id, future in futures:
                    try:
                        future.result()
                        result.updated += 1
                    except Exception as exc:
                        logger.error(f"Failed to sync stats for student {student_id}: {exc}")
                        result.errors += 1
                        result.errorDetails.append(
                            {"studentId": student_id, "errorMessage": str(exc)}
                        )
                logger.info(
                    f"Stats sync for tenant {tenant_id}: "
                    f"{min(start + chunk_size, len(student_ids))}/{len(student_ids)} processed"
                )

        return result

    def sync_tenant(self, tenant_id: str, chunk_size: Optional[int] = None) -> BatchResult:
        """Recompute every student of a tenant."""
        if not tenant_id:
            raise InvalidArgument("tenantId is required")
        student_ids = self._repositories(tenant_id).list_student_ids()
        logger.info(f"Starting stats sync for tenant {tenant_id}: {len(student_ids)} students")
        result = self.recompute_batch(tenant_id, student_ids, chunk_size=chunk_size)
        logger.info(
            f"Stats sync for tenant {tenant_id} completed: "
            f"{result.updated} updated, {result.errors} errors"
        )
        return result
