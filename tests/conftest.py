"""
Test fixtures for Medflix.

Provides app, client, auth_client, admin_client, and db fixtures with
file-based SQLite and a JSON preference file under tmp_path.
Google Generative AI is mocked globally to avoid API calls during tests.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

STUDENT_EMAIL = "student@example.com"
ADMIN_EMAIL = "admin@example.com"
PASSWORD = "Testpass123"


@pytest.fixture(scope="session", autouse=True)
def mock_gemini():
    """Mock Google Generative AI globally to prevent API calls."""
    with patch.dict("sys.modules", {
        "google.generativeai": MagicMock(),
    }):
        yield


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    from ai_resilience import get_circuit_breaker
    get_circuit_breaker().reset()
    yield
    get_circuit_breaker().reset()


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app
    from werkzeug.security import generate_password_hash

    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "PREFERENCES_PATH": str(tmp_path / "preferences.json"),
        "SECRET_KEY": "test-secret-key",
        "WTF_CSRF_ENABLED": False,
        "REDIS_URL": "",
    })

    with app.app_context():
        from database import get_db, init_db, run_migrations

        init_db()
        run_migrations()
        app._db_initialized = True

        # Seed a student (user 1) and an admin (user 2), both on the 3rd Term
        db = get_db()
        now = datetime.now().isoformat()
        pw = generate_password_hash(PASSWORD)
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, created_at) VALUES (1, 'Test Student', ?, ?, ?)",
            (STUDENT_EMAIL, pw, now),
        )
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, created_at) VALUES (2, 'Test Admin', ?, ?, ?)",
            (ADMIN_EMAIL, pw, now),
        )
        db.execute("INSERT INTO profiles (id, role, term_id, created_at) VALUES (1, 'student', 3, ?)", (now,))
        db.execute("INSERT INTO profiles (id, role, term_id, created_at) VALUES (2, 'admin', 3, ?)", (now,))
        db.commit()

    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _login(app, email):
    client = app.test_client()
    resp = client.post("/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def auth_client(app):
    """Authenticated test client (logged in as the student)."""
    with _login(app, STUDENT_EMAIL) as client:
        yield client


@pytest.fixture
def admin_client(app):
    """Authenticated test client (logged in as the admin)."""
    with _login(app, ADMIN_EMAIL) as client:
        yield client


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def seeded_content(app):
    """Cardiology (2 summaries) and Pharmacology (1 summary) on the 3rd Term,
    plus Anatomy on the 1st Term."""
    with app.app_context():
        from database import get_db
        db = get_db()
        db.execute("INSERT INTO subjects (id, name, color, term_id) VALUES (10, 'Cardiology', '#007BFF', 3)")
        db.execute("INSERT INTO subjects (id, name, color, term_id) VALUES (11, 'Pharmacology', '#28A745', 3)")
        db.execute("INSERT INTO subjects (id, name, color, term_id) VALUES (12, 'Anatomy', '#DC3545', 1)")
        db.execute(
            "INSERT INTO summaries (id, subject_id, title, content) VALUES "
            "(100, 10, 'Heart Sounds', '<h2>S1</h2><p>AV valves close.</p><h3>Split</h3>')"
        )
        db.execute("INSERT INTO summaries (id, subject_id, title, content) VALUES (101, 10, 'Heart Failure', '<p>HF</p>')")
        db.execute("INSERT INTO summaries (id, subject_id, title, content) VALUES (102, 11, 'Beta Blockers', '<p>BB</p>')")
        db.execute("INSERT INTO summaries (id, subject_id, title, content) VALUES (103, 12, 'Skull', '<p>Bones</p>')")
        db.commit()
    return {"cardiology": 10, "pharmacology": 11, "anatomy": 12,
            "heart_sounds": 100, "heart_failure": 101, "beta_blockers": 102, "skull": 103}
