from datetime import datetime, timedelta, timezone

import pytest

from core.errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    DuplicateEmail,
    Forbidden,
    IncorrectCurrentPassword,
    NotFound,
    ValidationError,
)
from core.security import Principal, session_id_for
from models.audit_log import AuditLog
from models.session import Session
from models.user import User

PASSWORD = "Secret123!"


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _register(auth, db, email="alice@example.com", password=PASSWORD):
    return auth.register(db, email, password, "Alice", "Example")


def _principal(user):
    return Principal(id=user.id, email=user.email, is_admin=bool(user.is_admin))


# -- Register ----------------------------------------------------------------


def test_register_creates_regular_active_user(auth, db):
    user = _register(auth, db)
    assert user.id
    assert user.email == "alice@example.com"
    assert user.is_admin is False
    assert user.is_active is True
    assert user.password_hash != PASSWORD


def test_register_normalises_email(auth, db):
    user = _register(auth, db, email="  Alice@Example.COM ")
    assert user.email == "alice@example.com"


def test_register_then_authenticate(auth, db):
    _register(auth, db)
    user, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    assert user.email == "alice@example.com"
    assert token
    assert auth.resolve_session(db, token).email == "alice@example.com"


def test_same_password_different_digests(auth, db):
    a = _register(auth, db, email="a@example.com")
    b = _register(auth, db, email="b@example.com")
    assert a.password_hash != b.password_hash


def test_duplicate_email_rejected(auth, db):
    _register(auth, db)
    with pytest.raises(DuplicateEmail):
        _register(auth, db, email="ALICE@example.com")
    assert db.query(User).filter(User.email == "alice@example.com").count() == 1


def test_duplicate_email_race_hits_unique_index(auth, db, monkeypatch):
    _register(auth, db)
    # Simulate the loser of a concurrent insert: the pre-check saw nothing.
    monkeypatch.setattr(auth.users, "email_taken", lambda *a, **kw: False)
    with pytest.raises(DuplicateEmail):
        _register(auth, db)
    assert db.query(User).filter(User.email == "alice@example.com").count() == 1


@pytest.mark.parametrize(
    "email, password",
    [
        ("not-an-email", PASSWORD),
        ("", PASSWORD),
        ("alice@example.com", "short"),
        ("alice@example.com", ""),
    ],
)
def test_register_validation(auth, db, email, password):
    with pytest.raises(ValidationError):
        _register(auth, db, email=email, password=password)
    assert db.query(User).count() == 0


def test_register_requires_names(auth, db):
    with pytest.raises(ValidationError):
        auth.register(db, "alice@example.com", PASSWORD, "  ", "Example")


# -- Authenticate -------------------------------------------------------------


def test_authenticate_updates_last_login_and_audits(auth, db):
    _register(auth, db)
    user, _ = auth.authenticate(db, "alice@example.com", PASSWORD, request_ip="10.0.0.1")
    assert user.last_login_at is not None
    row = db.query(AuditLog).filter(AuditLog.action == "user_login").one()
    assert row.target_user_id == user.id
    assert row.request_ip == "10.0.0.1"


@pytest.mark.parametrize("case", ["unknown", "wrong_password", "inactive", "no_digest"])
def test_authenticate_failures_are_uniform(auth, db, case):
    user = _register(auth, db)
    email, password = "alice@example.com", PASSWORD
    if case == "unknown":
        email = "nobody@example.com"
    elif case == "wrong_password":
        password = "Wrong123!"
    elif case == "inactive":
        user.is_active = False
        db.commit()
    elif case == "no_digest":
        user.password_hash = None
        db.commit()

    with pytest.raises(AuthenticationFailed) as exc:
        auth.authenticate(db, email, password)
    assert exc.value.detail == "Invalid email or password"
    assert exc.value.status_code == 401
    assert db.query(Session).count() == 0
    assert db.query(AuditLog).filter(AuditLog.action == "login_failed").count() == 1


def test_inactive_admin_cannot_log_in(auth, db):
    user = _register(auth, db)
    user.is_admin = True
    user.is_active = False
    db.commit()
    with pytest.raises(AuthenticationFailed):
        auth.authenticate(db, "alice@example.com", PASSWORD)


# -- ResolveSession -----------------------------------------------------------


def test_resolve_session_returns_principal(auth, db):
    _register(auth, db)
    user, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    principal = auth.resolve_session(db, token)
    assert principal == Principal(id=user.id, email="alice@example.com", is_admin=False)


@pytest.mark.parametrize("token", [None, "", "not-a-real-token"])
def test_resolve_session_unknown_token(auth, db, token):
    assert auth.resolve_session(db, token) is None


def test_session_token_not_stored_in_clear(auth, db):
    _register(auth, db)
    _, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    row = db.query(Session).one()
    assert row.sid == session_id_for(token)
    assert row.sid != token


def test_expired_session_is_refused_and_removed(auth, db):
    _register(auth, db)
    _, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    row = db.query(Session).one()
    row.expires_at = _utcnow() - timedelta(seconds=1)
    db.commit()

    assert auth.resolve_session(db, token) is None
    assert db.query(Session).count() == 0


def test_deactivation_invalidates_live_session(auth, db):
    user = _register(auth, db)
    _, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    user.is_active = False
    db.commit()

    assert auth.resolve_session(db, token) is None
    assert db.query(Session).count() == 0


def test_role_change_seen_on_next_resolve(auth, db):
    user = _register(auth, db)
    _, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    user.is_admin = True
    db.commit()
    assert auth.resolve_session(db, token).is_admin is True


def test_purge_expired_sessions(auth, db):
    _register(auth, db)
    _, keep = auth.authenticate(db, "alice@example.com", PASSWORD)
    _, drop = auth.authenticate(db, "alice@example.com", PASSWORD)
    stale = db.query(Session).filter(Session.sid == session_id_for(drop)).one()
    stale.expires_at = _utcnow() - timedelta(days=1)
    db.commit()

    assert auth.purge_expired_sessions(db) == 1
    assert auth.resolve_session(db, keep) is not None


# -- RequireRole --------------------------------------------------------------


def test_require_role():
    from auth.service import AuthService
    from core.security import PasswordHasher

    svc = AuthService(PasswordHasher(rounds=4), timedelta(days=7))
    user = Principal(id="u1", email="u@example.com", is_admin=False)
    admin = Principal(id="a1", email="a@example.com", is_admin=True)

    with pytest.raises(AuthenticationRequired):
        svc.require_role(None)
    with pytest.raises(AuthenticationRequired):
        svc.require_role(None, "admin")
    with pytest.raises(Forbidden):
        svc.require_role(user, "admin")
    assert svc.require_role(user) is user
    assert svc.require_role(admin, "admin") is admin
    with pytest.raises(ValueError):
        svc.require_role(admin, "superuser")


# -- Logout -------------------------------------------------------------------


def test_logout_is_idempotent(auth, db):
    _register(auth, db)
    _, token = auth.authenticate(db, "alice@example.com", PASSWORD)
    auth.logout(db, token)
    assert auth.resolve_session(db, token) is None
    auth.logout(db, token)
    auth.logout(db, None)
    assert db.query(AuditLog).filter(AuditLog.action == "logout").count() == 1


def test_logout_leaves_other_sessions(auth, db):
    _register(auth, db)
    _, first = auth.authenticate(db, "alice@example.com", PASSWORD)
    _, second = auth.authenticate(db, "alice@example.com", PASSWORD)
    auth.logout(db, first)
    assert auth.resolve_session(db, second) is not None


# -- ChangePassword -----------------------------------------------------------


def test_change_password_wrong_current_keeps_old_digest(auth, db):
    user = _register(auth, db)
    old_digest = user.password_hash
    with pytest.raises(IncorrectCurrentPassword):
        auth.change_password(db, _principal(user), "Wrong123!", "NewSecret456!")
    db.refresh(user)
    assert user.password_hash == old_digest
    auth.authenticate(db, "alice@example.com", PASSWORD)


def test_change_password_checks_current_before_policy(auth, db):
    user = _register(auth, db)
    with pytest.raises(IncorrectCurrentPassword):
        auth.change_password(db, _principal(user), "Wrong123!", "x")


def test_change_password_enforces_policy(auth, db):
    user = _register(auth, db)
    with pytest.raises(ValidationError):
        auth.change_password(db, _principal(user), PASSWORD, "short")
    auth.authenticate(db, "alice@example.com", PASSWORD)


def test_change_password_swaps_credentials(auth, db):
    user = _register(auth, db)
    _, other_session = auth.authenticate(db, "alice@example.com", PASSWORD)
    auth.change_password(db, _principal(user), PASSWORD, "NewSecret456!")

    with pytest.raises(AuthenticationFailed):
        auth.authenticate(db, "alice@example.com", PASSWORD)
    auth.authenticate(db, "alice@example.com", "NewSecret456!")
    # other sessions are not revoked by a password change
    assert auth.resolve_session(db, other_session) is not None


# -- Profile ------------------------------------------------------------------


def test_update_profile(auth, db):
    user = _register(auth, db)
    updated = auth.update_profile(db, _principal(user), "Alicia", "Sample", "alicia@example.com")
    assert (updated.first_name, updated.last_name, updated.email) == ("Alicia", "Sample", "alicia@example.com")
    assert updated.is_admin is False


def test_update_profile_email_conflict(auth, db):
    _register(auth, db, email="bob@example.com")
    user = _register(auth, db)
    with pytest.raises(DuplicateEmail):
        auth.update_profile(db, _principal(user), "Alice", "Example", "bob@example.com")


def test_update_profile_keeps_own_email(auth, db):
    user = _register(auth, db)
    updated = auth.update_profile(db, _principal(user), "Alice", "Changed", "alice@example.com")
    assert updated.last_name == "Changed"


def test_update_profile_missing_user(auth, db):
    ghost = Principal(id="missing", email="ghost@example.com", is_admin=False)
    with pytest.raises(NotFound):
        auth.update_profile(db, ghost, "A", "B", "ghost@example.com")


# -- Administration -----------------------------------------------------------


def _admin(auth, db):
    admin = auth.register(db, "admin@example.com", PASSWORD, "Ada", "Admin")
    admin.is_admin = True
    db.commit()
    return _principal(admin)


def test_admin_create_user_with_flags(auth, db):
    admin = _admin(auth, db)
    user = auth.create_user(
        db, admin, "editor@example.com", PASSWORD, "Ed", "Itor",
        is_admin=True, is_active=False,
    )
    assert user.is_admin is True
    assert user.is_active is False
    with pytest.raises(DuplicateEmail):
        auth.create_user(db, admin, "editor@example.com", PASSWORD, "Ed", "Itor")


def test_admin_update_user_flags(auth, db):
    admin = _admin(auth, db)
    alice = _register(auth, db)
    updated = auth.update_user(db, admin, alice.id, {"is_admin": True})
    assert updated.is_admin is True
    updated = auth.update_user(db, admin, alice.id, {"is_active": False, "first_name": "Al"})
    assert updated.is_active is False
    assert updated.first_name == "Al"


def test_admin_cannot_demote_or_deactivate_self(auth, db):
    admin = _admin(auth, db)
    with pytest.raises(ValidationError):
        auth.update_user(db, admin, admin.id, {"is_admin": False})
    with pytest.raises(ValidationError):
        auth.update_user(db, admin, admin.id, {"is_active": False})
    with pytest.raises(ValidationError):
        auth.deactivate_user(db, admin, admin.id)
    # harmless self-edits are fine
    assert auth.update_user(db, admin, admin.id, {"last_name": "Lovelace"}).last_name == "Lovelace"


def test_admin_unknown_user(auth, db):
    admin = _admin(auth, db)
    with pytest.raises(NotFound):
        auth.update_user(db, admin, "nope", {"is_admin": True})
    with pytest.raises(NotFound):
        auth.deactivate_user(db, admin, "nope")
    with pytest.raises(NotFound):
        auth.reset_password(db, admin, "nope", "NewSecret456!")


def test_deactivate_keeps_row(auth, db):
    admin = _admin(auth, db)
    alice = _register(auth, db)
    auth.deactivate_user(db, admin, alice.id)
    db.refresh(alice)
    assert alice.is_active is False
    assert db.query(User).count() == 2


def test_reset_password(auth, db):
    admin = _admin(auth, db)
    alice = _register(auth, db)
    with pytest.raises(ValidationError):
        auth.reset_password(db, admin, alice.id, "short")
    auth.reset_password(db, admin, alice.id, "Reset1234!")
    auth.authenticate(db, "alice@example.com", "Reset1234!")
