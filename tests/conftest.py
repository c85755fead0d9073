import os
import sys
from pathlib import Path

# Environment must be in place before the backend modules are imported
os.environ.setdefault("FLASK_ENV", "development")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-bytes-for-hs256")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:5173")
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("STATS_ATTENDANCE_POLICY", "all")
os.environ.setdefault("EVENTS_WEBHOOK_SECRET", "events-secret")

# Ensure the backend directory is on sys.path for module imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402

from fakes import InMemoryDirectory, StudioStore  # noqa: E402

TENANT = "studio-1"


@pytest.fixture
def store():
    return StudioStore()


@pytest.fixture
def directory():
    return InMemoryDirectory()


@pytest.fixture
def services(store, directory):
    from core.container import build_services

    return build_services(store.factory(), directory, policy="all", workers=0)


@pytest.fixture
def app(services):
    from app import create_app

    application = create_app(services)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def id_token_claims():
    """Patch Firebase ID token verification; set the returned dict's contents per test."""
    claims = {}

    def verify(token):
        if token != "firebase-token":
            raise ValueError("bad token")
        return dict(claims)

    with patch("core.auth.firebase_auth.verify_id_token", side_effect=verify):
        yield claims


@pytest.fixture
def admin_headers(id_token_claims):
    id_token_claims.update({"uid": "admin-1", "role": "admin", "businessId": TENANT})
    return {"Authorization": "Bearer firebase-token"}
