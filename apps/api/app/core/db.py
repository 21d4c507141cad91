"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/force.db

Every service operation runs inside `transaction()`. On sqlite the transaction
is opened with BEGIN IMMEDIATE, so the write lock is held from the first read
and read-then-write sequences are serialized across threads and processes.
"""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import DDL, Table, create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlmodel import SQLModel

from .config import get_database_url


def _repo_root() -> Path:
    # apps/api/app/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):  # type: ignore[no-untyped-def]
        # hand transaction control to SQLAlchemy; pysqlite would otherwise defer BEGIN
        dbapi_conn.isolation_level = None
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys = ON;")
        cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is not None:
        return _engine

    url = get_database_url()
    connect_args: Dict[str, Any] = {}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": 30}

    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        url = "sqlite:///" + sp.as_posix()

    _engine = create_engine(url, future=True, connect_args=connect_args)
    if is_sqlite:
        _install_sqlite_hooks(_engine)
    return _engine


def reset_engine() -> None:
    """Dispose the cached engine (next get_engine() re-reads DATABASE_URL)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def append_only(table: Table) -> None:
    """Attach sqlite triggers rejecting UPDATE/DELETE on `table` (fires on create_all)."""
    name = table.name
    for op in ("update", "delete"):
        ddl = DDL(
            f"""
            CREATE TRIGGER IF NOT EXISTS trg_{name}_no_{op}
            BEFORE {op.upper()} ON {name}
            BEGIN
              SELECT RAISE(ABORT, 'append-only: {name} cannot be {op}d');
            END;
            """
        )
        event.listen(table, "after_create", ddl.execute_if(dialect="sqlite"))


def import_models() -> None:
    # table registration side effects
    from app.modules.artifacts import models as _artifacts  # noqa: F401
    from app.modules.blocks import models as _blocks  # noqa: F401
    from app.modules.checkpoints import models as _checkpoints  # noqa: F401
    from app.modules.failure_log import models as _failure_log  # noqa: F401
    from app.modules.reliability import models as _reliability  # noqa: F401


def init_db() -> None:
    """Create missing tables, partial indexes and append-only triggers."""
    import_models()
    SQLModel.metadata.create_all(get_engine())


@contextmanager
def transaction() -> Iterator[Connection]:
    with get_engine().begin() as conn:
        yield conn


def db_health() -> Dict[str, Any]:
    url = get_database_url()
    kind = "sqlite" if url.startswith("sqlite") else "unknown"
    sp = resolve_sqlite_path(url)
    path = str(sp.as_posix()) if sp is not None else url

    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
