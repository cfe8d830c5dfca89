# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin user.

Run once after the initial migration:
    python bin/seed_admin.py

The script reads FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD from etc/app.conf
file.  After the row is inserted those env vars are no longer used by the
application.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from auth.service import normalize_email        # noqa: E402
from auth.stores import AuditTrail              # noqa: E402
from core.config import settings                # noqa: E402
from core.errors import ValidationError         # noqa: E402
from core.security import build_password_hasher  # noqa: E402
from database import SessionLocal               # noqa: E402
from models.user import User                    # noqa: E402


def seed() -> int:
    if not settings.first_admin_email or not settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – nothing to do.")
        return 0

    hasher = build_password_hasher()
    try:
        email = normalize_email(settings.first_admin_email)
    except ValidationError as exc:
        print(f"[seed_admin] FIRST_ADMIN_EMAIL is not usable: {exc.detail}")
        return 1
    err = hasher.check_policy(settings.first_admin_password)
    if err:
        print(f"[seed_admin] FIRST_ADMIN_PASSWORD rejected: {err}")
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"[seed_admin] Admin '{email}' already exists – skipping.")
            return 0

        admin = User(
            email=email,
            first_name="Site",
            last_name="Admin",
            password_hash=hasher.hash(settings.first_admin_password),
            is_admin=True,
            is_active=True,
        )
        db.add(admin)
        db.flush()
        AuditTrail().record(db, "seed_admin", target_user_id=admin.id, detail="bootstrap admin")
        db.commit()
        print(f"[seed_admin] Admin '{email}' created successfully.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(seed())
