# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Alembic environment for the users / sessions / audit_logs schema.

Run from the project root (``alembic upgrade head``).  alembic.ini puts
``backend/`` on sys.path, so the application's own Settings and engine are
used and DATABASE_URL from etc/app.conf is the only connection string.

SQLite has no real ALTER TABLE; migrations against it run in batch mode.
"""

from alembic import context

from core.config import settings
from database import Base, engine

# Every mapped table has to be registered on Base.metadata for autogenerate
import models.user        # noqa: F401
import models.session     # noqa: F401
import models.audit_log   # noqa: F401

_IS_SQLITE = settings.database_url.startswith("sqlite")

_CONFIGURE_OPTS = dict(
    target_metadata=Base.metadata,
    compare_type=True,
    render_as_batch=_IS_SQLITE,
)


# ---------------------------------------------------------------------------
# Online mode: run against the application engine
# ---------------------------------------------------------------------------
def run_migrations_online():
    with engine.connect() as conn:
        context.configure(connection=conn, **_CONFIGURE_OPTS)
        with context.begin_transaction():
            context.run_migrations()


# ---------------------------------------------------------------------------
# Offline mode: emit SQL to stdout (``alembic upgrade head --sql``)
# ---------------------------------------------------------------------------
def run_migrations_offline():
    context.configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
