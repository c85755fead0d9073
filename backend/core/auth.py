import os
import json
import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import firebase_admin
import jwt
from firebase_admin import credentials
from firebase_admin import auth as firebase_auth
from flask import current_app, g, jsonify, request

from core import config
from core.errors import StudioError, Unauthenticated
from core.logger import logger

# JWT Configuration (teacher sessions)
# Require JWT_SECRET_KEY in production (like CORS_ORIGINS)
# Only allow random generation in development mode
_jwt_secret_env = os.getenv('JWT_SECRET_KEY')
if not _jwt_secret_env:
    if config.is_development():
        _jwt_secret_env = os.urandom(32).hex()
        logger.warning("JWT_SECRET_KEY not set. Using random key for development. Set JWT_SECRET_KEY in production!")
    else:
        raise ValueError("JWT_SECRET_KEY environment variable must be set in production")
JWT_SECRET_KEY = _jwt_secret_env
JWT_ALGORITHM = 'HS256'
SESSION_TOKEN_TYPE = 'teacher_session'

ROLE_SUPER_ADMIN = 'superAdmin'
ROLE_ADMIN = 'admin'
ROLE_TEACHER = 'teacher'


# Initialize Firebase Admin SDK
def init_firebase_admin():
    try:
        if firebase_admin._apps:
            return

        # 1. Try explicit path env var
        service_account_path = os.getenv('FIREBASE_SERVICE_ACCOUNT_PATH')
        if service_account_path and os.path.exists(service_account_path):
            firebase_admin.initialize_app(credentials.Certificate(service_account_path))
            logger.info("Firebase Admin initialized successfully")
            return

        # 2. Try base64 content env var (or raw JSON pasted into it)
        service_account_b64 = os.getenv('FIREBASE_SERVICE_ACCOUNT_BASE64')
        if service_account_b64:
            if service_account_b64.strip().startswith('{'):
                try:
                    service_account_info = json.loads(service_account_b64)
                    firebase_admin.initialize_app(credentials.Certificate(service_account_info))
                    logger.info("Firebase Admin initialized successfully")
                    return
                except Exception as e:
                    logger.warning(f"Failed to parse FIREBASE_SERVICE_ACCOUNT_BASE64 as raw JSON: {type(e).__name__}")

            try:
                missing_padding = len(service_account_b64) % 4
                if missing_padding:
                    service_account_b64 += '=' * (4 - missing_padding)

                service_account_info = json.loads(base64.b64decode(service_account_b64))
                firebase_admin.initialize_app(credentials.Certificate(service_account_info))
                logger.info("Firebase Admin initialized successfully")
                return
            except Exception as e:
                logger.warning(f"Failed to decode FIREBASE_SERVICE_ACCOUNT_BASE64: {type(e).__name__}")

        # 3. Fallback: local key file next to the backend (local development)
        backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        key_path = os.path.join(backend_dir, 'serviceAccountKey.json')
        if os.path.exists(key_path):
            firebase_admin.initialize_app(credentials.Certificate(key_path))
            logger.info("Firebase Admin initialized successfully")
            return

        logger.warning("No Firebase Admin credentials found. Firestore and ID token checks will not work.")

    except Exception as e:
        logger.error(f"Error initializing Firebase Admin: {type(e).__name__}")


@dataclass
class Caller:
    """Authenticated identity behind a request."""

    uid: str
    role: Optional[str] = None
    tenant_id: Optional[str] = None
    teacher_id: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    def is_tenant_admin(self, tenant_id: str) -> bool:
        return self.is_super_admin or (self.role == ROLE_ADMIN and self.tenant_id == tenant_id)

    def can_access_tenant(self, tenant_id: str) -> bool:
        return self.is_super_admin or (self.tenant_id is not None and self.tenant_id == tenant_id)


def create_teacher_session_token(teacher_id: str, tenant_id: str, session_id: str) -> Dict[str, Any]:
    """Create a signed session token for a teacher validated through a link."""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(days=config.TEACHER_SESSION_DAYS)
    payload = {
        'sub': session_id,
        'type': SESSION_TOKEN_TYPE,
        'role': ROLE_TEACHER,
        'teacherId': teacher_id,
        'businessId': tenant_id,
        'iat': now,
        'exp': expires_at,
    }
    return {
        'token': jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM),
        'expiresAt': expires_at,
    }


def verify_teacher_session_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a teacher session token"""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get('type') != SESSION_TOKEN_TYPE:
        return None
    return payload


def resolve_caller(token: str, directory=None) -> Optional[Caller]:
    """
    Turn a bearer token into a Caller.

    Teacher session tokens are checked first; anything else must be a Firebase
    ID token. Role and tenant come from custom claims, falling back to the
    ``users/{uid}`` profile.
    """
    session = verify_teacher_session_token(token)
    if session:
        return Caller(
            uid=session['sub'],
            role=ROLE_TEACHER,
            tenant_id=session.get('businessId'),
            teacher_id=session.get('teacherId'),
        )

    try:
        claims = firebase_auth.verify_id_token(token)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.CertificateFetchError) as e:
        logger.info(f"Rejected bearer token: {type(e).__name__}")
        return None

    uid = claims.get('uid') or claims.get('sub')
    if not uid:
        return None
    caller = Caller(uid=uid, role=claims.get('role'), tenant_id=claims.get('businessId'))

    if (caller.role is None or caller.tenant_id is None) and directory is not None:
        profile = directory.get_user(uid) or {}
        caller.role = caller.role or profile.get('role')
        caller.tenant_id = caller.tenant_id or profile.get('businessId')

    return caller


def _directory():
    services = current_app.extensions.get('studio')
    return services.directory if services is not None else None


def _caller_from_header(auth_header: str) -> Caller:
    # Expecting "Bearer <token>" format
    parts = auth_header.split(' ')
    if len(parts) != 2 or parts[0].lower() != 'bearer' or not parts[1]:
        raise Unauthenticated('Invalid authorization format. Expected "Bearer <token>"')
    caller = resolve_caller(parts[1], _directory())
    if caller is None:
        raise Unauthenticated('Invalid or expired token')
    return caller


def require_auth(f):
    """Decorator requiring a Firebase ID token or a teacher session token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        if not auth_header:
            return jsonify({'error': 'Authorization header required', 'code': Unauthenticated.code}), 401
        try:
            g.caller = _caller_from_header(auth_header)
        except StudioError as e:
            return jsonify(e.to_dict()), e.http_status
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """Like require_auth, but lets requests without an Authorization header through"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.caller = None
        auth_header = request.headers.get('Authorization')
        if auth_header:
            try:
                g.caller = _caller_from_header(auth_header)
            except StudioError as e:
                return jsonify(e.to_dict()), e.http_status
        return f(*args, **kwargs)

    return decorated_function
