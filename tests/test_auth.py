from datetime import datetime, timedelta, timezone

import jwt

from conftest import TENANT
from core import auth
from core.auth import Caller, create_teacher_session_token, resolve_caller, verify_teacher_session_token


def test_session_token_round_trip():
    session = create_teacher_session_token("t1", TENANT, "sess-1")

    payload = verify_teacher_session_token(session["token"])

    assert payload["teacherId"] == "t1"
    assert payload["type"] == "teacher_session"
    assert session["expiresAt"] > datetime.now(timezone.utc) + timedelta(days=89)


def test_expired_or_foreign_tokens_are_rejected():
    expired = jwt.encode(
        {"sub": "x", "type": "teacher_session", "exp": datetime.now(timezone.utc) - timedelta(seconds=1)},
        auth.JWT_SECRET_KEY,
        algorithm=auth.JWT_ALGORITHM,
    )
    other_type = jwt.encode({"sub": "x", "type": "refresh"}, auth.JWT_SECRET_KEY, algorithm=auth.JWT_ALGORITHM)
    wrong_key = jwt.encode({"sub": "x", "type": "teacher_session"}, "a-different-key-of-reasonable-length-000", algorithm=auth.JWT_ALGORITHM)

    assert verify_teacher_session_token(expired) is None
    assert verify_teacher_session_token(other_type) is None
    assert verify_teacher_session_token(wrong_key) is None


def test_id_token_claims_take_precedence(id_token_claims, directory):
    id_token_claims.update({"uid": "u1", "role": "superAdmin"})
    directory.users["u1"] = {"role": "admin", "businessId": TENANT}

    caller = resolve_caller("firebase-token", directory)

    assert caller == Caller(uid="u1", role="superAdmin", tenant_id=TENANT)
    assert caller.is_tenant_admin("any-studio")


def test_rejected_id_token(id_token_claims):
    assert resolve_caller("garbage") is None


def test_caller_permissions():
    admin = Caller(uid="a", role="admin", tenant_id=TENANT)
    teacher = Caller(uid="t", role="teacher", tenant_id=TENANT, teacher_id="t1")
    orphan = Caller(uid="o", role="admin")

    assert admin.is_tenant_admin(TENANT) and not admin.is_tenant_admin("studio-2")
    assert teacher.can_access_tenant(TENANT) and not teacher.is_tenant_admin(TENANT)
    assert not orphan.can_access_tenant(TENANT)
