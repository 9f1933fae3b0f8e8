"""
Module: stock_kernel.db.triggers
Responsibility: Loading, installing and verifying the PostgreSQL triggers that
    keep transfer records append-only.  Database-level complement to the ORM
    listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - store_transfers rows: no UPDATE, no DELETE, whatever issued the SQL
      (raw statements, psql sessions, migrations).

Failure modes:
    - PostgreSQL RAISE EXCEPTION (SQLSTATE restrict_violation) on a refused
      statement, surfaced by SQLAlchemy as a DBAPIError subclass.
    - FileNotFoundError if an SQL file is missing from the sql/ directory.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_store_transfer.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_store_transfer_immutability_update",
    "trg_store_transfer_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate the trigger files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the database-level immutability triggers.

    Preconditions: tables exist and the engine is connected to PostgreSQL.
    Postconditions: every trigger in ALL_TRIGGER_NAMES is installed.
        Functions use CREATE OR REPLACE and triggers are dropped before they
        are created, so a second call is harmless.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the triggers and their function.

    WARNING: only for maintenance that must rewrite transfer history.
    Reinstall immediately afterwards.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """
    with engine.connect() as conn:
        return [row[0] for row in conn.execute(text(check_sql))]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is present in pg_trigger."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
