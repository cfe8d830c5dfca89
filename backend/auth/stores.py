# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Persistence for the auth layer: users, sessions and the audit trail.

Every method takes the request's SQLAlchemy ``Session`` explicitly; none of
them commit.  Committing is the caller's decision so that an action and its
audit row land in the same transaction.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session as DbSession, aliased

from models.audit_log import AuditLog
from models.session import Session
from models.user import User


class UserStore:
    def get(self, db: DbSession, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, db: DbSession, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    def email_taken(self, db: DbSession, email: str, exclude_id: Optional[str] = None) -> bool:
        q = db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        return q.first() is not None

    def list(self, db: DbSession) -> List[User]:
        return db.query(User).order_by(User.created_at, User.email).all()

    def add(self, db: DbSession, user: User) -> User:
        db.add(user)
        # get user.id and surface unique-constraint violations before commit
        db.flush()
        return user


class SessionStore:
    def create(self, db: DbSession, sid: str, user_id: str, expires_at: datetime, data: dict) -> Session:
        row = Session(sid=sid, user_id=user_id, expires_at=expires_at, data=data)
        db.add(row)
        return row

    def get(self, db: DbSession, sid: str) -> Optional[Session]:
        return db.query(Session).filter(Session.sid == sid).first()

    def delete(self, db: DbSession, sid: str) -> int:
        return db.query(Session).filter(Session.sid == sid).delete(synchronize_session=False)

    def delete_expired(self, db: DbSession, now: datetime) -> int:
        return (
            db.query(Session)
            .filter(Session.expires_at <= now)
            .delete(synchronize_session=False)
        )

    def count_for_user(self, db: DbSession, user_id: str) -> int:
        return db.query(Session).filter(Session.user_id == user_id).count()


class AuditTrail:
    def record(
        self,
        db: DbSession,
        action: str,
        *,
        actor_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        detail: Optional[str] = None,
        request_ip: Optional[str] = None,
    ) -> AuditLog:
        row = AuditLog(
            actor_id=actor_id,
            target_user_id=target_user_id,
            action=action,
            detail=detail,
            request_ip=request_ip,
        )
        db.add(row)
        return row

    def query(
        self,
        db: DbSession,
        *,
        emails: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[tuple]:
        """
        Return ``(AuditLog, actor_email, target_email)`` tuples newest-first.

        * ``emails`` – match rows where *either* the actor or the target has
                       one of the given addresses.
        * ``since`` / ``until`` – bounds on ``created_at``.
        """
        Actor = aliased(User)
        Target = aliased(User)

        q = (
            db.query(AuditLog, Actor.email, Target.email)
            .outerjoin(Actor, AuditLog.actor_id == Actor.id)
            .outerjoin(Target, AuditLog.target_user_id == Target.id)
        )
        if emails:
            q = q.filter(Actor.email.in_(emails) | Target.email.in_(emails))
        if since:
            q = q.filter(AuditLog.created_at >= since)
        if until:
            q = q.filter(AuditLog.created_at <= until)

        q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        if limit:
            q = q.limit(limit)
        return q.all()
