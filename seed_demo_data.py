"""
Seed Demo Data — Standalone script and pytest fixture.

Creates a demo admin and a demo student on the 3rd Term, two subjects with
summaries (one with a quiz and embedded media), and a little progress for
the student.

Usage:
    python seed_demo_data.py                        # Seed into the running database
    python seed_demo_data.py --reset                # Clear demo data first
    python seed_demo_data.py --promote EMAIL        # Grant the admin role
"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime, timedelta

from werkzeug.security import generate_password_hash

from derived_state import SUBJECT_COLORS

DEMO_TERM_ID = 3

DEMO_ADMIN = {"name": "Dr. Helena Costa", "email": "admin@demo.medflix"}
DEMO_STUDENT = {"name": "Rafael Lima", "email": "student@demo.medflix"}

DEMO_QUIZ = [
    {
        "text": "Which heart sound marks the closure of the atrioventricular valves?",
        "alternatives": ["S1", "S2", "S3", "S4"],
        "correct_index": 0,
        "explanation": "S1 is produced when the mitral and tricuspid valves close at the start of systole.",
    },
    {
        "text": "Where is the aortic area best auscultated?",
        "alternatives": [
            "Second right intercostal space",
            "Second left intercostal space",
            "Fourth left intercostal space",
            "Fifth left intercostal space, midclavicular line",
        ],
        "correct_index": 0,
        "explanation": "The aortic focus sits at the second right intercostal space beside the sternum.",
    },
    {
        "text": "A physiological split of S2 is heard best during:",
        "alternatives": ["Expiration", "Inspiration", "Breath holding", "Valsalva strain"],
        "correct_index": 1,
        "explanation": "Inspiration delays pulmonary valve closure, widening the A2-P2 interval.",
    },
    {
        "text": "An S3 gallop in an older adult most often suggests:",
        "alternatives": ["Aortic stenosis", "Ventricular volume overload", "Pericarditis", "Normal ageing"],
        "correct_index": 1,
        "explanation": "S3 reflects rapid filling of a dilated, volume-overloaded ventricle.",
    },
    {
        "text": "Which sound is absent in atrial fibrillation?",
        "alternatives": ["S1", "S2", "S3", "S4"],
        "correct_index": 3,
        "explanation": "S4 needs an effective atrial contraction, which is lost in atrial fibrillation.",
    },
]

DEMO_SUBJECTS = [
    {
        "name": "Cardiology",
        "summaries": [
            {
                "title": "Heart Sounds",
                "content": (
                    "<h2>First heart sound (S1)</h2><p>Closure of the mitral and tricuspid valves.</p>"
                    "<h2>Second heart sound (S2)</h2><p>Closure of the aortic and pulmonary valves.</p>"
                    "<h3>Physiological splitting</h3><p>Widens on inspiration.</p>"
                ),
                "video": "https://drive.google.com/file/d/1HeartSoundsDemo/view",
                "audio": "https://open.spotify.com/episode/4demoCardioEpisode",
                "questions": DEMO_QUIZ,
            },
            {
                "title": "Heart Failure",
                "content": "<h2>Definition</h2><p>Inability of the heart to meet metabolic demand.</p>",
            },
        ],
    },
    {
        "name": "Pharmacology",
        "summaries": [
            {
                "title": "Beta Blockers",
                "content": "<h2>Mechanism</h2><p>Competitive antagonists of beta-adrenergic receptors.</p>",
            },
        ],
    },
]


def _upsert_user(db, person: dict, password: str, now: str) -> int:
    db.execute(
        "INSERT OR IGNORE INTO users (name, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (person["name"], person["email"], password, now),
    )
    return db.execute("SELECT id FROM users WHERE email = ?", (person["email"],)).fetchone()["id"]


def seed(db) -> dict:
    """Seed demo data into the database. Returns summary dict."""
    now = datetime.now().isoformat()
    password = generate_password_hash("Demo1234")

    admin_id = _upsert_user(db, DEMO_ADMIN, password, now)
    student_id = _upsert_user(db, DEMO_STUDENT, password, now)
    for uid, role in ((admin_id, "admin"), (student_id, "student")):
        db.execute(
            "INSERT OR IGNORE INTO profiles (id, role, term_id, created_at) VALUES (?, ?, ?, ?)",
            (uid, role, DEMO_TERM_ID, now),
        )

    summary_ids = []
    for i, subject in enumerate(DEMO_SUBJECTS):
        cur = db.execute(
            "INSERT INTO subjects (name, color, term_id, created_by, created_at) VALUES (?, ?, ?, ?, ?)",
            (subject["name"], SUBJECT_COLORS[i % len(SUBJECT_COLORS)], DEMO_TERM_ID, admin_id, now),
        )
        subject_id = cur.lastrowid
        for summ in subject["summaries"]:
            cur = db.execute(
                "INSERT INTO summaries (subject_id, title, content, audio, video, questions, created_by, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    subject_id, summ["title"], summ["content"], summ.get("audio", ""),
                    summ.get("video", ""), json.dumps(summ.get("questions", [])), admin_id, now,
                ),
            )
            summary_ids.append(cur.lastrowid)

    # The student finished the first summary yesterday
    db.execute(
        "INSERT OR IGNORE INTO completed_summaries (user_id, summary_id, position) VALUES (?, ?, 0)",
        (student_id, summary_ids[0]),
    )
    db.execute(
        "UPDATE profiles SET streak = 1, last_completion_date = ? WHERE id = ?",
        ((date.today() - timedelta(days=1)).isoformat(), student_id),
    )
    db.commit()

    return {
        "admin_id": admin_id,
        "student_id": student_id,
        "subjects": len(DEMO_SUBJECTS),
        "summaries": len(summary_ids),
    }


def clear_demo(db) -> None:
    """Remove all demo users and the content they created."""
    emails = (DEMO_ADMIN["email"], DEMO_STUDENT["email"])
    rows = db.execute("SELECT id FROM users WHERE email IN (?, ?)", emails).fetchall()
    uids = [r["id"] for r in rows]
    if not uids:
        return
    placeholders = ",".join("?" * len(uids))

    db.execute(
        f"DELETE FROM summaries WHERE subject_id IN "
        f"(SELECT id FROM subjects WHERE created_by IN ({placeholders}))", uids,
    )
    db.execute(f"DELETE FROM subjects WHERE created_by IN ({placeholders})", uids)
    db.execute(f"DELETE FROM completed_summaries WHERE user_id IN ({placeholders})", uids)
    db.execute(f"DELETE FROM profiles WHERE id IN ({placeholders})", uids)
    db.execute(f"DELETE FROM users WHERE id IN ({placeholders})", uids)
    db.commit()


def promote_admin(db, email: str) -> bool:
    """Grant the admin role to an existing user. Returns False if unknown."""
    row = db.execute("SELECT id FROM users WHERE email = ?", (email.strip().lower(),)).fetchone()
    if not row:
        return False
    db.execute(
        "INSERT INTO profiles (id, role, created_at) VALUES (?, 'admin', ?) "
        "ON CONFLICT(id) DO UPDATE SET role = 'admin'",
        (row["id"], datetime.now().isoformat()),
    )
    db.commit()
    return True


if __name__ == "__main__":
    from app import create_app
    from database import get_db, init_db, run_migrations

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        db = get_db()
        if "--promote" in sys.argv:
            email = sys.argv[sys.argv.index("--promote") + 1]
            ok = promote_admin(db, email)
            print(f"[Seed] {'Promoted' if ok else 'No such user:'} {email}")
            sys.exit(0 if ok else 1)
        if "--reset" in sys.argv:
            clear_demo(db)
            print("[Seed] Demo data cleared.")
        result = seed(db)
        print(f"[Seed] Done: {result}")
