# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Promote an existing account to administrator.

    python bin/make_admin.py <user-email-or-id>

When no account matches, the known accounts are listed so the operator can
pick the right one.
"""

import sys
import os

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from database import SessionLocal  # noqa: E402
from auth.stores import AuditTrail    # noqa: E402
from models.user import User        # noqa: E402


def make_admin(email_or_id: str) -> int:
    key = email_or_id.strip()
    db = SessionLocal()
    try:
        user = (
            db.query(User)
            .filter((User.email == key.lower()) | (User.id == key))
            .first()
        )
        if not user:
            print(f"[make_admin] User not found: {key}")
            print("[make_admin] Available users:")
            for u in db.query(User).order_by(User.created_at.desc()).all():
                flag = " (ADMIN)" if u.is_admin else ""
                print(f"  - {u.email} (ID: {u.id}){flag}")
            return 1

        if user.is_admin:
            print(f"[make_admin] {user.email} is already an admin.")
            return 0

        user.is_admin = True
        AuditTrail().record(db, "update_user", target_user_id=user.id, detail="is_admin=True (cli)")
        db.commit()
        print(f"[make_admin] {user.email} ({user.first_name} {user.last_name}) is now an admin.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python bin/make_admin.py <user-email-or-id>")
        sys.exit(2)
    sys.exit(make_admin(sys.argv[1]))
