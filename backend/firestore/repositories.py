"""
Repository interfaces for tenant-scoped studio data.

A ``StudioRepository`` is bound to exactly one tenant: every read and write it
performs stays inside that tenant's documents, so callers never build
collection paths themselves. ``DirectoryRepository`` covers the few
collections that live outside any tenant (teacher links, user profiles).

Documents are exchanged as plain dicts carrying their document id under
``"id"``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from core.errors import InvalidArgument

# Tenant sub-collections
STUDENTS = "students"
CLASS_INSTANCES = "classInstances"
ATTENDANCE = "attendance"
ENROLLMENTS = "enrollments"
TEACHERS = "teachers"

# Global collections
TEACHER_LINKS = "teacherLinks"
USERS = "users"


class StudioRepository(ABC):
    """Data access for one tenant."""

    def __init__(self, tenant_id: str):
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise InvalidArgument("tenantId is required")
        self.tenant_id = tenant_id

    # ----- stats sources -----

    @abstractmethod
    def class_instances_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        """Class instances whose ``studentIds`` contains the student."""

    @abstractmethod
    def attendance_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        """Every attendance record of the student, any status."""

    @abstractmethod
    def enrollments_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        """Every enrollment of the student, active or not."""

    @abstractmethod
    def get_class_instance(self, instance_id: str) -> Optional[Dict[str, Any]]:
        """Point lookup of one class instance, ``None`` when absent."""

    # ----- students -----

    @abstractmethod
    def list_student_ids(self) -> List[str]:
        """Ids of every student in the tenant."""

    @abstractmethod
    def list_students(self, where: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Student documents matching every equality in ``where``.

        Keys may be dotted field paths such as ``"stats.totalClasses"``.
        """

    @abstractmethod
    def write_stats(self, student_id: str, stats: Dict[str, Any]) -> None:
        """
        Replace the ``stats`` field of a student, leaving other fields alone.

        Raises:
            NotFound: the student document does not exist
        """

    @abstractmethod
    def clear_stats(self, student_ids: List[str]) -> int:
        """Remove the ``stats`` field from the given students, returning how many."""

    # ----- attendance -----

    @abstractmethod
    def get_attendance(self, attendance_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def set_attendance(self, attendance_id: str, data: Dict[str, Any]) -> None:
        """Merge-write an attendance document."""

    @abstractmethod
    def delete_attendance(self, attendance_id: str) -> None:
        pass

    # ----- teachers -----

    @abstractmethod
    def get_teacher(self, teacher_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def set_teacher_link(self, teacher_id: str, link_token: str) -> None:
        """
        Store the teacher's current access link token.

        Raises:
            NotFound: the teacher document does not exist
        """


class DirectoryRepository(ABC):
    """Data access for collections shared by all tenants."""

    @abstractmethod
    def get_teacher_link(self, link_token: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def create_teacher_link(self, link_token: str, data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def touch_teacher_link(self, link_token: str) -> None:
        """Record that the link was just used."""

    @abstractmethod
    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        pass


# Builds the repository for a tenant id
RepositoryFactory = Callable[[str], StudioRepository]
