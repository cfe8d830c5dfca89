# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Delete expired rows from the sessions table.

Expired sessions are already refused (and removed) when presented, and the
service purges them at startup; this script is for a periodic cron job:
    python bin/purge_sessions.py
"""

import sys
import os

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from database import SessionLocal            # noqa: E402
from auth.service import build_auth_service  # noqa: E402


def purge() -> int:
    db = SessionLocal()
    try:
        n = build_auth_service().purge_expired_sessions(db)
        print(f"[purge_sessions] Removed {n} expired session(s).")
        return n
    finally:
        db.close()


if __name__ == "__main__":
    purge()
