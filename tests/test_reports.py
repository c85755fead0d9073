from datetime import datetime, timezone

import pytest

from conftest import TENANT
from core.errors import InvalidArgument
from stats.reports import build_report, parse_filters


def _dt(month, day):
    return datetime(2025, month, day, tzinfo=timezone.utc)


@pytest.fixture
def repo(store):
    store.add(TENANT, "students", "missed-jan", isActive=True, stats={
        "firstClassAttended": False, "firstClassDate": _dt(1, 10),
        "firstClassBranchId": "north", "firstClassTeacherId": "t1",
        "activeEnrollments": 1, "totalClasses": 2,
    })
    store.add(TENANT, "students", "missed-mar", isActive=True, stats={
        "firstClassAttended": False, "firstClassDate": _dt(3, 2),
        "firstClassBranchId": "south", "firstClassTeacherId": "t2",
        "activeEnrollments": 1, "totalClasses": 1,
    })
    store.add(TENANT, "students", "never-scheduled", isActive=True, stats={
        "firstClassAttended": False, "firstClassDate": None,
        "activeEnrollments": 0, "totalClasses": 0,
    })
    store.add(TENANT, "students", "walk-in", isActive=True, stats={
        "firstClassAttended": True, "firstAttendanceDate": _dt(2, 1),
        "firstAttendanceBranchId": "north", "activeEnrollments": 0, "totalClasses": 1,
    })
    store.add(TENANT, "students", "inactive", isActive=False, stats={
        "firstClassAttended": False, "activeEnrollments": 0, "totalClasses": 0,
    })
    return store.factory()(TENANT)


def _ids(students):
    return sorted(s["id"] for s in students)


def test_first_class_no_attendance_requires_a_first_class(repo):
    assert _ids(build_report(repo, "first_class_no_attendance")) == ["missed-jan", "missed-mar"]


def test_first_class_no_attendance_filters(repo):
    filters = parse_filters({"startDate": "2025-02-01", "branchId": "south"})

    assert _ids(build_report(repo, "first_class_no_attendance", filters)) == ["missed-mar"]
    assert build_report(repo, "first_class_no_attendance", {"teacherId": "t9"}) == []


def test_first_attendance_no_course(repo):
    assert _ids(build_report(repo, "first_attendance_no_course")) == ["walk-in"]
    filters = parse_filters({"endDate": "2025-01-15T00:00:00Z"})
    assert build_report(repo, "first_attendance_no_course", filters) == []


def test_active_no_class(repo):
    assert _ids(build_report(repo, "active_no_class")) == ["never-scheduled"]


def test_unknown_report_type(repo):
    with pytest.raises(InvalidArgument):
        build_report(repo, "revenue")


def test_parse_filters_rejects_bad_dates():
    with pytest.raises(InvalidArgument):
        parse_filters({"startDate": "last tuesday"})
    with pytest.raises(InvalidArgument):
        parse_filters({"startDate": "2025-03-01", "endDate": "2025-01-01"})
