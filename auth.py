"""
User Authentication — Flask-Login blueprint.

Provides register, login, and logout routes as JSON endpoints.
Uses werkzeug.security for password hashing.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from flask import Blueprint, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from extensions import limiter
from helpers import end_session, request_data, start_session

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, name: str, email: str, role: str = "student"):
        self.id = id
        self.name = name
        self.email = email
        self.role = role

    @staticmethod
    def get(user_id: int):
        row = get_db().execute(
            "SELECT u.id, u.name, u.email, COALESCE(p.role, 'student') AS role "
            "FROM users u LEFT JOIN profiles p ON p.id = u.id WHERE u.id = ?",
            (user_id,),
        ).fetchone()
        if row:
            return User(row["id"], row["name"], row["email"], row["role"])
        return None

    @staticmethod
    def get_by_email(email: str):
        return get_db().execute(
            "SELECT id, name, email, password_hash, login_attempts, locked_until "
            "FROM users WHERE email = ?", (email,),
        ).fetchone()

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required."}), 401


def _validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters."
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter."
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter."
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit."
    return None


def _session_payload(user: User) -> dict:
    coord = start_session(user.id)
    return {"user": user.to_dict(), **coord.snapshot()}


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    data = request_data()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    row = User.get_by_email(email)
    if not row:
        return jsonify({"error": "Invalid email or password."}), 401

    # Check account lockout
    if row["locked_until"]:
        try:
            lock_time = datetime.fromisoformat(row["locked_until"])
        except ValueError:
            lock_time = None
        if lock_time is not None:
            remaining = (lock_time - datetime.now()).total_seconds()
            if remaining > 0:
                mins = math.ceil(remaining / 60)
                log_event("login_locked", row["id"], f"email={email}")
                return jsonify({"error": f"Account temporarily locked. Try again in {mins} minute(s)."}), 423

    db = get_db()
    if not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        attempts = row["login_attempts"] + 1
        if attempts >= LOCKOUT_THRESHOLD:
            db.execute(
                "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
                (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
            )
        else:
            db.execute("UPDATE users SET login_attempts=? WHERE id=?", (attempts, row["id"]))
        db.commit()
        log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
        return jsonify({"error": "Invalid email or password."}), 401

    # Success: reset lockout fields
    db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
    db.commit()

    login_user(User.get(row["id"]), remember=True)
    log_event("login_success", row["id"])
    return jsonify(_session_payload(current_user))


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("3 per hour")
def register():
    data = request_data()
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    confirm = data.get("confirm_password", password) or ""

    if not name or not email or not password:
        return jsonify({"error": "All fields are required."}), 400

    if password != confirm:
        return jsonify({"error": "Passwords do not match."}), 400

    pw_error = _validate_password(password)
    if pw_error:
        return jsonify({"error": pw_error}), 400

    if User.get_by_email(email):
        return jsonify({"error": "An account with this email already exists."}), 409

    db = get_db()
    cur = db.execute(
        "INSERT INTO users (name, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (name, email, generate_password_hash(password), datetime.now().isoformat()),
    )
    user_id = cur.lastrowid
    db.commit()

    log_event("register", user_id, f"email={email}")
    login_user(User(user_id, name, email), remember=True)
    return jsonify(_session_payload(current_user)), 201


@auth_bp.route("/logout", methods=["GET", "POST"])
def logout():
    uid = current_user.id if current_user.is_authenticated else None
    log_event("logout", uid)
    logout_user()
    return jsonify({"success": True, "navigation": end_session()})
