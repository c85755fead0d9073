"""
Runtime configuration read from environment variables.

Values are read once at import time; ``app.py`` loads ``.env`` files before
anything imports this module.
"""
import os
import sys

from core.logger import logger


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {raw!r}, using {default}")
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def is_development() -> bool:
    return '--dev' in sys.argv or os.getenv('FLASK_ENV') == 'development'


# Firestore layout
TENANTS_COLLECTION = os.getenv('TENANTS_COLLECTION', 'businesses')
FIRESTORE_BATCH_LIMIT = max(1, min(_int_env('FIRESTORE_BATCH_LIMIT', 500), 500))

# Stats aggregation
ATTENDANCE_POLICY_ALL = 'all'
ATTENDANCE_POLICY_ATTENDED = 'attended'
ATTENDANCE_POLICIES = (ATTENDANCE_POLICY_ALL, ATTENDANCE_POLICY_ATTENDED)

STATS_ATTENDANCE_POLICY = os.getenv('STATS_ATTENDANCE_POLICY', ATTENDANCE_POLICY_ALL).strip().lower()
if STATS_ATTENDANCE_POLICY not in ATTENDANCE_POLICIES:
    logger.warning(
        f"Unknown STATS_ATTENDANCE_POLICY {STATS_ATTENDANCE_POLICY!r}, using {ATTENDANCE_POLICY_ALL!r}"
    )
    STATS_ATTENDANCE_POLICY = ATTENDANCE_POLICY_ALL

MIN_SYNC_CHUNK_SIZE = 10
MAX_SYNC_CHUNK_SIZE = 50
STATS_SYNC_CHUNK_SIZE = _int_env('STATS_SYNC_CHUNK_SIZE', MAX_SYNC_CHUNK_SIZE)

# Reactive recompute queue
STATS_TASK_WORKERS = max(0, _int_env('STATS_TASK_WORKERS', 4))
STATS_TASK_MAX_ATTEMPTS = max(1, _int_env('STATS_TASK_MAX_ATTEMPTS', 3))
STATS_TASK_BACKOFF_SECONDS = max(0.0, _float_env('STATS_TASK_BACKOFF_SECONDS', 0.5))
# Listener holds studentId/studentIds of every watched document of every tenant in memory
STATS_CHANGE_LISTENER = _bool_env('STATS_CHANGE_LISTENER', False)
EVENTS_WEBHOOK_SECRET = os.getenv('EVENTS_WEBHOOK_SECRET', '')

# Teacher links and sessions
TEACHER_LINK_BASE_URL = os.getenv('TEACHER_LINK_BASE_URL', 'http://localhost:5173/teacher')
TEACHER_SESSION_DAYS = max(1, _int_env('TEACHER_SESSION_DAYS', 90))


def clamp_chunk_size(chunk_size) -> int:
    """Keep batch chunks between MIN_SYNC_CHUNK_SIZE and MAX_SYNC_CHUNK_SIZE."""
    if chunk_size is None:
        chunk_size = STATS_SYNC_CHUNK_SIZE
    return max(MIN_SYNC_CHUNK_SIZE, min(int(chunk_size), MAX_SYNC_CHUNK_SIZE))


def cors_origins() -> list:
    """Return allowed CORS origins; production must set CORS_ORIGINS explicitly."""
    origins = os.getenv('CORS_ORIGINS', '')
    if not origins:
        if is_development():
            origins = 'http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173'
            logger.warning("Using default CORS origins for development. Set CORS_ORIGINS in production!")
        else:
            raise ValueError("CORS_ORIGINS environment variable must be set in production")
    return [origin.strip() for origin in origins.split(',') if origin.strip()]
