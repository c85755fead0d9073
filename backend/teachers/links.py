"""
Link-based teacher access.

A teacher receives a secret link (``teacherLinks/{token}``) from a studio
admin. The link identifies the teacher and tenant; it can be exchanged for a
session token, and it can be presented directly when marking attendance.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from core import config
from core.auth import Caller, create_teacher_session_token
from core.errors import InvalidArgument, NotFound, PermissionDenied, Unauthenticated, require_fields
from core.logger import logger
from firestore.repositories import DirectoryRepository, RepositoryFactory
from stats.dates import to_utc_datetime


def validate_teacher_token(
    repositories: RepositoryFactory,
    directory: DirectoryRepository,
    link_token: str,
) -> Dict[str, Any]:
    """
    Check a teacher link and return its data (``teacherId``, ``businessId``).

    Raises:
        InvalidArgument: no token given
        NotFound: unknown link, or its teacher no longer exists
        PermissionDenied: the link expired or the teacher is inactive
    """
    if not link_token:
        raise InvalidArgument("Link token is required")

    link = directory.get_teacher_link(link_token)
    if not link:
        raise NotFound("Invalid teacher link")

    expires_at = to_utc_datetime(link.get("expiresAt"))
    if expires_at and expires_at < datetime.now(timezone.utc):
        raise PermissionDenied("Teacher link has expired")

    tenant_id = link.get("businessId")
    teacher_id = link.get("teacherId")
    if not tenant_id or not teacher_id:
        raise NotFound("Teacher link is incomplete")

    teacher = repositories(tenant_id).get_teacher(teacher_id)
    if not teacher:
        raise NotFound("Teacher not found")
    if teacher.get("isActive") is False:
        raise PermissionDenied("Teacher account is inactive")

    link["teacher"] = teacher
    return link


def validate_teacher_link(repositories, directory, link_token: str) -> Dict[str, Any]:
    """Validate a link for the teacher page and record the access."""
    link = validate_teacher_token(repositories, directory, link_token)
    directory.touch_teacher_link(link_token)
    return {
        "success": True,
        "teacherId": link["teacherId"],
        "tenantId": link["businessId"],
        "teacherData": link["teacher"],
    }


def generate_teacher_link(repositories, directory, caller: Caller, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Create a new access link for a teacher; only the tenant's admins may do this."""
    if caller is None:
        raise Unauthenticated("User must be authenticated")
    require_fields(payload, "teacherId", "tenantId")
    teacher_id = payload["teacherId"]
    tenant_id = payload["tenantId"]

    if not caller.is_tenant_admin(tenant_id):
        logger.warning(
            f"Teacher link authorization failed: uid={caller.uid} role={caller.role} "
            f"tenant={caller.tenant_id} requested={tenant_id}"
        )
        raise PermissionDenied("Not authorized")

    repository = repositories(tenant_id)
    if not repository.get_teacher(teacher_id):
        raise NotFound("Teacher not found")

    link_token = secrets.token_hex(32)
    directory.create_teacher_link(
        link_token,
        {
            "teacherId": teacher_id,
            "businessId": tenant_id,
            "createdAt": datetime.now(timezone.utc),
            "createdBy": caller.uid,
            "lastAccessed": None,
        },
    )
    repository.set_teacher_link(teacher_id, link_token)
    logger.info(f"Generated teacher link for teacher {teacher_id} in tenant {tenant_id}")

    return {
        "linkToken": link_token,
        "url": f"{config.TEACHER_LINK_BASE_URL}?link={link_token}",
    }


def create_teacher_session(repositories, directory, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Exchange a valid link for a session token; calling again renews the session."""
    require_fields(payload, "linkToken")
    link = validate_teacher_token(repositories, directory, payload["linkToken"])
    directory.touch_teacher_link(payload["linkToken"])

    session_id = payload.get("sessionId") or uuid.uuid4().hex
    session = create_teacher_session_token(link["teacherId"], link["businessId"], session_id)
    return {
        "success": True,
        "token": session["token"],
        "expiresAt": session["expiresAt"],
        "sessionId": session_id,
        "teacherId": link["teacherId"],
        "tenantId": link["businessId"],
    }
