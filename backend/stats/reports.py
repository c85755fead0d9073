"""
Report queries answered from the stats stored on student documents.

- first_class_no_attendance: students who have a first class but missed it
- first_attendance_no_course: students who attended but hold no active enrollment
- active_no_class: active students with neither classes nor enrollments

Equality constraints go to the repository; date, branch and teacher filters
are applied in memory.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.errors import InvalidArgument
from firestore.repositories import StudioRepository
from stats.dates import to_utc_datetime

FIRST_CLASS_NO_ATTENDANCE = "first_class_no_attendance"
FIRST_ATTENDANCE_NO_COURSE = "first_attendance_no_course"
ACTIVE_NO_CLASS = "active_no_class"

REPORT_TYPES = (FIRST_CLASS_NO_ATTENDANCE, FIRST_ATTENDANCE_NO_COURSE, ACTIVE_NO_CLASS)

_CONSTRAINTS = {
    FIRST_CLASS_NO_ATTENDANCE: {"stats.firstClassAttended": False},
    FIRST_ATTENDANCE_NO_COURSE: {"stats.activeEnrollments": 0},
    ACTIVE_NO_CLASS: {
        "isActive": True,
        "stats.totalClasses": 0,
        "stats.activeEnrollments": 0,
    },
}

# Which stats fields the date/branch/teacher filters look at
_FILTER_FIELDS = {
    FIRST_CLASS_NO_ATTENDANCE: ("firstClassDate", "firstClassBranchId", "firstClassTeacherId"),
    FIRST_ATTENDANCE_NO_COURSE: (
        "firstAttendanceDate",
        "firstAttendanceBranchId",
        "firstAttendanceTeacherId",
    ),
}


def parse_filters(args: Dict[str, Any]) -> Dict[str, Any]:
    """Validate report filters taken from a query string."""
    filters: Dict[str, Any] = {}
    for name in ("startDate", "endDate"):
        raw = args.get(name)
        if raw:
            parsed = to_utc_datetime(raw)
            if parsed is None:
                raise InvalidArgument(f"{name} must be an ISO-8601 date")
            filters[name] = parsed
    for name in ("branchId", "teacherId"):
        if args.get(name):
            filters[name] = args[name]
    if "startDate" in filters and "endDate" in filters and filters["startDate"] > filters["endDate"]:
        raise InvalidArgument("startDate must not be after endDate")
    return filters


def _matches(report_type: str, stats: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    fields = _FILTER_FIELDS.get(report_type)
    if fields is None:
        return True

    date_field, branch_field, teacher_field = fields
    when = to_utc_datetime(stats.get(date_field))
    if when is None:
        return False
    if filters.get("startDate") and when < filters["startDate"]:
        return False
    if filters.get("endDate") and when > filters["endDate"]:
        return False
    if filters.get("branchId") and stats.get(branch_field) != filters["branchId"]:
        return False
    if filters.get("teacherId") and stats.get(teacher_field) != filters["teacherId"]:
        return False
    return True


def build_report(
    repository: StudioRepository,
    report_type: str,
    filters: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    if report_type not in REPORT_TYPES:
        raise InvalidArgument(
            f"Unknown report type {report_type!r}; expected one of {', '.join(REPORT_TYPES)}"
        )
    filters = filters or {}
    students = repository.list_students(where=_CONSTRAINTS[report_type])
    return [s for s in students if _matches(report_type, s.get("stats") or {}, filters)]
