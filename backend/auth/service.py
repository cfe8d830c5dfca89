# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Credential & session authority.

``AuthService`` is built once in ``main.py`` with its stores and hashing
policy injected, stored on ``app.state`` and handed to request handlers via
``core.security.get_auth_service``.  Each operation receives the request's DB
session and commits its own unit of work (action + audit row together).

Security notes
--------------
* Every login failure – unknown email, no local password, wrong password,
  disabled account – raises the *same* ``AuthenticationFailed``.  The real
  reason goes to the log and the audit trail only.
* Session tokens are returned to the caller once and stored only as their
  HMAC-SHA256 digest.
* Changing a password does NOT revoke the user's other sessions; they live
  until their own expiry.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from auth.stores import AuditTrail, SessionStore, UserStore
from core.errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    DuplicateEmail,
    Forbidden,
    IncorrectCurrentPassword,
    NotFound,
    ValidationError,
)
from core.logger import get_logger
from core.config import settings
from core.security import (
    PasswordHasher,
    Principal,
    build_password_hasher,
    new_session_token,
    session_id_for,
)
from models.user import User

logger = get_logger("auth")

ROLE_USER = "user"
ROLE_ADMIN = "admin"


def _utcnow() -> datetime:
    # sessions.expires_at is a naive UTC column
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(email: Optional[str]) -> str:
    """Validate syntax (no DNS lookups) and return the lower-cased address."""
    if not email or not email.strip():
        raise ValidationError("Email is required")
    try:
        info = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email format")
    return info.normalized.lower()


def _require_name(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required")
    return value


class AuthService:
    def __init__(
        self,
        hasher: PasswordHasher,
        session_ttl: timedelta,
        users: Optional[UserStore] = None,
        sessions: Optional[SessionStore] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.hasher = hasher
        self.session_ttl = session_ttl
        self.users = users or UserStore()
        self.sessions = sessions or SessionStore()
        self.audit = audit or AuditTrail()

    # -----------------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------------

    def _check_password(self, password: Optional[str]) -> None:
        err = self.hasher.check_policy(password)
        if err:
            raise ValidationError(err)

    def _insert_user(self, db: DbSession, user: User) -> User:
        """Insert and flush; a lost uniqueness race becomes DuplicateEmail."""
        try:
            return self.users.add(db, user)
        except IntegrityError:
            db.rollback()
            raise DuplicateEmail()

    def _commit(self, db: DbSession) -> None:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateEmail()

    def get_user(self, db: DbSession, user_id: str) -> User:
        user = self.users.get(db, user_id)
        if not user:
            raise NotFound()
        return user

    # -----------------------------------------------------------------------
    # Registration / provisioning
    # -----------------------------------------------------------------------

    def register(
        self,
        db: DbSession,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        *,
        request_ip: Optional[str] = None,
    ) -> User:
        """Self-service sign-up.  The new account is a regular, active user."""
        user = self._new_user(db, email, password, first_name, last_name)
        self.audit.record(db, "register", actor_id=user.id, target_user_id=user.id, request_ip=request_ip)
        self._commit(db)
        db.refresh(user)
        logger.info("Registered user id=%s", user.id)
        return user

    def create_user(
        self,
        db: DbSession,
        actor: Principal,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        *,
        is_admin: bool = False,
        is_active: bool = True,
        request_ip: Optional[str] = None,
    ) -> User:
        """Administrative provisioning; the caller picks the flags."""
        user = self._new_user(
            db, email, password, first_name, last_name,
            is_admin=is_admin, is_active=is_active,
        )
        self.audit.record(
            db, "create_user",
            actor_id=actor.id, target_user_id=user.id,
            detail=f"is_admin={is_admin} is_active={is_active}",
            request_ip=request_ip,
        )
        self._commit(db)
        db.refresh(user)
        logger.info("User id=%s created by admin id=%s", user.id, actor.id)
        return user

    def _new_user(
        self,
        db: DbSession,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        *,
        is_admin: bool = False,
        is_active: bool = True,
    ) -> User:
        email = normalize_email(email)
        self._check_password(password)
        first_name = _require_name(first_name, "First name")
        last_name = _require_name(last_name, "Last name")

        # Checked up front for a clean error; the unique index catches races.
        if self.users.email_taken(db, email):
            raise DuplicateEmail()

        return self._insert_user(db, User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=self.hasher.hash(password),
            is_admin=is_admin,
            is_active=is_active,
        ))

    # -----------------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------------

    def authenticate(
        self,
        db: DbSession,
        email: str,
        password: str,
        *,
        request_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[User, str]:
        """
        Verify credentials and open a session.  Returns the user and the
        session token to hand to the client.
        """
        try:
            lookup = normalize_email(email)
        except ValidationError:
            lookup = None
        user = self.users.get_by_email(db, lookup) if lookup else None

        reason = None
        if user is None:
            self.hasher.burn(password or "")
            reason = "unknown email"
        elif not user.password_hash:
            self.hasher.burn(password or "")
            reason = "no local password"
        elif not self.hasher.verify(password or "", user.password_hash):
            reason = "wrong password"
        elif not user.is_active:
            reason = "account disabled"

        if reason:
            logger.warning("Login failed for %r: %s", email, reason)
            self.audit.record(
                db, "login_failed",
                target_user_id=user.id if user else None,
                detail=reason,
                request_ip=request_ip,
            )
            db.commit()
            raise AuthenticationFailed()

        user.last_login_at = datetime.now(timezone.utc)
        self.audit.record(db, "user_login", actor_id=user.id, target_user_id=user.id, request_ip=request_ip)
        token = self.start_session(db, user, request_ip=request_ip, user_agent=user_agent)
        db.refresh(user)
        logger.info("User id=%s logged in", user.id)
        return user, token

    def start_session(
        self,
        db: DbSession,
        user: User,
        *,
        request_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        token = new_session_token()
        self.sessions.create(
            db,
            sid=session_id_for(token),
            user_id=user.id,
            expires_at=_utcnow() + self.session_ttl,
            data={"ip": request_ip, "user_agent": user_agent},
        )
        db.commit()
        return token

    def resolve_session(self, db: DbSession, token: Optional[str]) -> Optional[Principal]:
        """
        Map a client token to a Principal, or None.  Expired sessions and
        sessions of since-deactivated users are deleted on sight.
        """
        if not token:
            return None
        sid = session_id_for(token)
        row = self.sessions.get(db, sid)
        if row is None:
            return None

        if row.expires_at <= _utcnow():
            self.sessions.delete(db, sid)
            db.commit()
            return None

        user = self.users.get(db, row.user_id)
        if user is None or not user.is_active:
            logger.info("Dropping session of inactive or missing user id=%s", row.user_id)
            self.sessions.delete(db, sid)
            db.commit()
            return None

        return Principal(id=user.id, email=user.email, is_admin=bool(user.is_admin))

    def require_role(self, principal: Optional[Principal], role: str = ROLE_USER) -> Principal:
        if role not in (ROLE_USER, ROLE_ADMIN):
            raise ValueError(f"unknown role {role!r}")
        if principal is None:
            raise AuthenticationRequired()
        if role == ROLE_ADMIN and not principal.is_admin:
            raise Forbidden()
        return principal

    def logout(self, db: DbSession, token: Optional[str], *, request_ip: Optional[str] = None) -> None:
        """Delete the session behind *token*.  Unknown tokens are a no-op."""
        if not token:
            return
        sid = session_id_for(token)
        row = self.sessions.get(db, sid)
        if row is None:
            return
        self.audit.record(db, "logout", actor_id=row.user_id, target_user_id=row.user_id, request_ip=request_ip)
        self.sessions.delete(db, sid)
        db.commit()

    def purge_expired_sessions(self, db: DbSession) -> int:
        n = self.sessions.delete_expired(db, _utcnow())
        db.commit()
        return n

    # -----------------------------------------------------------------------
    # Self-service
    # -----------------------------------------------------------------------

    def change_password(
        self,
        db: DbSession,
        principal: Principal,
        current_password: str,
        new_password: str,
        *,
        request_ip: Optional[str] = None,
    ) -> None:
        user = self.get_user(db, principal.id)

        # Current password first: a wrong one fails regardless of the new one.
        if not self.hasher.verify(current_password or "", user.password_hash):
            raise IncorrectCurrentPassword()
        self._check_password(new_password)

        user.password_hash = self.hasher.hash(new_password)
        self.audit.record(db, "change_password", actor_id=user.id, target_user_id=user.id, request_ip=request_ip)
        db.commit()
        logger.info("User id=%s changed password", user.id)

    def update_profile(
        self,
        db: DbSession,
        principal: Principal,
        first_name: str,
        last_name: str,
        email: str,
        *,
        request_ip: Optional[str] = None,
    ) -> User:
        """Name and email only; role and status flags are not reachable here."""
        first_name = _require_name(first_name, "First name")
        last_name = _require_name(last_name, "Last name")
        email = normalize_email(email)

        user = self.get_user(db, principal.id)
        if self.users.email_taken(db, email, exclude_id=user.id):
            raise DuplicateEmail()

        user.first_name = first_name
        user.last_name = last_name
        user.email = email
        self.audit.record(db, "update_profile", actor_id=user.id, target_user_id=user.id, request_ip=request_ip)
        self._commit(db)
        db.refresh(user)
        return user

    # -----------------------------------------------------------------------
    # Administration
    # -----------------------------------------------------------------------

    def list_users(self, db: DbSession) -> list[User]:
        return self.users.list(db)

    def update_user(
        self,
        db: DbSession,
        actor: Principal,
        user_id: str,
        changes: dict,
        *,
        request_ip: Optional[str] = None,
    ) -> User:
        """
        Apply a partial update.  Accepted keys: first_name, last_name, email,
        is_admin, is_active.  An admin cannot drop their own admin flag or
        deactivate themselves (prevents accidental self-lockout).
        """
        user = self.get_user(db, user_id)

        if user.id == actor.id:
            if changes.get("is_admin") is False:
                raise ValidationError("Cannot remove your own admin access")
            if changes.get("is_active") is False:
                raise ValidationError("Cannot deactivate your own account")

        applied = []
        if "first_name" in changes:
            user.first_name = _require_name(changes["first_name"], "First name")
            applied.append("first_name")
        if "last_name" in changes:
            user.last_name = _require_name(changes["last_name"], "Last name")
            applied.append("last_name")
        if "email" in changes:
            email = normalize_email(changes["email"])
            if self.users.email_taken(db, email, exclude_id=user.id):
                raise DuplicateEmail()
            user.email = email
            applied.append("email")
        for flag in ("is_admin", "is_active"):
            if changes.get(flag) is not None:
                setattr(user, flag, bool(changes[flag]))
                applied.append(f"{flag}={bool(changes[flag])}")

        self.audit.record(
            db, "update_user",
            actor_id=actor.id, target_user_id=user.id,
            detail=", ".join(applied) or None,
            request_ip=request_ip,
        )
        self._commit(db)
        db.refresh(user)
        logger.info("Admin id=%s updated user id=%s: %s", actor.id, user.id, ", ".join(applied))
        return user

    def deactivate_user(
        self,
        db: DbSession,
        actor: Principal,
        user_id: str,
        *,
        request_ip: Optional[str] = None,
    ) -> None:
        """
        The "delete" of the admin UI.  Rows are kept because authored content
        references them.
        """
        if user_id == actor.id:
            raise ValidationError("Cannot delete your own account")
        user = self.get_user(db, user_id)
        user.is_active = False
        self.audit.record(db, "deactivate_user", actor_id=actor.id, target_user_id=user.id, request_ip=request_ip)
        db.commit()
        logger.info("Admin id=%s deactivated user id=%s", actor.id, user.id)

    def reset_password(
        self,
        db: DbSession,
        actor: Principal,
        user_id: str,
        new_password: str,
        *,
        request_ip: Optional[str] = None,
    ) -> None:
        """Admin overwrite of another user's password; no current-password check."""
        user = self.get_user(db, user_id)
        self._check_password(new_password)
        user.password_hash = self.hasher.hash(new_password)
        self.audit.record(db, "reset_password", actor_id=actor.id, target_user_id=user.id, request_ip=request_ip)
        db.commit()
        logger.info("Admin id=%s reset password of user id=%s", actor.id, user.id)


def build_auth_service() -> AuthService:
    """The process-wide instance; main.py stores it on ``app.state``."""
    return AuthService(
        hasher=build_password_hasher(),
        session_ttl=timedelta(seconds=settings.session_ttl_seconds),
    )
