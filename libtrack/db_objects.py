from sqlalchemy import inspect, text
from libtrack.extensions import db

ACTIVE_INDEX = "uq_penalties_active"

PARTIAL_INDEX_DIALECTS = ("sqlite", "postgresql")
GENERATED_KEY_DIALECTS = ("mysql", "mariadb")

# Legacy rows: NULL status with a fine still owed -> pending, anything else -> settled
MIGRATE_NULL_PENDING_SQL = """
UPDATE penalties
SET status = 'Pending Payment'
WHERE status IS NULL AND fine > 0
"""

MIGRATE_NULL_PAID_SQL = """
UPDATE penalties
SET status = 'Paid'
WHERE status IS NULL
"""

# Keep only the newest non-paid row per (transaction_id, user_id).
# Ids are collected in a derived table; MySQL refuses a DELETE that reads its own table directly.
CLEANUP_SUPERSEDED_SQL = """
DELETE FROM penalties
WHERE penalty_id IN (
    SELECT penalty_id FROM (
        SELECT p1.penalty_id
        FROM penalties p1
        JOIN penalties p2
          ON p2.transaction_id = p1.transaction_id
         AND p2.user_id = p1.user_id
         AND p2.penalty_id > p1.penalty_id
         AND p2.status <> 'Paid'
        WHERE p1.status <> 'Paid'
    ) AS superseded
)
"""

# SQLite + PostgreSQL: partial unique index
PARTIAL_INDEX_SQL = f"""
CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_INDEX}
ON penalties (transaction_id, user_id)
WHERE status <> 'Paid'
"""

# MySQL has no partial index: a generated key that is NULL for Paid rows
# gives the same guarantee since NULLs never collide in a unique index.
MYSQL_ACTIVE_KEY_SQL = """
ALTER TABLE penalties
ADD COLUMN active_key VARCHAR(64)
GENERATED ALWAYS AS (
    CASE WHEN status <> 'Paid' THEN CONCAT(transaction_id, ':', user_id) ELSE NULL END
) STORED
"""

MYSQL_ACTIVE_INDEX_SQL = f"""
CREATE UNIQUE INDEX {ACTIVE_INDEX} ON penalties (active_key)
"""


def _index_names(conn, table: str) -> set:
    return {ix["name"] for ix in inspect(conn).get_indexes(table)}


def _column_names(conn, table: str) -> set:
    return {c["name"] for c in inspect(conn).get_columns(table)}


def ensure_db_objects(app):
    """
    Idempotent; safe to run on every start.
    - migrates NULL penalty statuses
    - removes superseded duplicates
    - installs the single-active-penalty unique index
    Skipped when the penalties table does not exist yet (before init-db / migrations).
    """
    with app.app_context():
        engine = db.engine
        dialect = engine.dialect.name

        if not inspect(engine).has_table("penalties"):
            app.logger.info("[db] penalties table missing, skipped.")
            return False

        if dialect not in PARTIAL_INDEX_DIALECTS + GENERATED_KEY_DIALECTS:
            app.logger.warning(
                f"[db] {dialect}: no partial unique index support, "
                "relying on application-level reconciliation."
            )
            return False

        with engine.begin() as conn:
            try:
                pending = conn.execute(text(MIGRATE_NULL_PENDING_SQL)).rowcount
                paid = conn.execute(text(MIGRATE_NULL_PAID_SQL)).rowcount
                removed = conn.execute(text(CLEANUP_SUPERSEDED_SQL)).rowcount

                if dialect in GENERATED_KEY_DIALECTS:
                    if "active_key" not in _column_names(conn, "penalties"):
                        conn.execute(text(MYSQL_ACTIVE_KEY_SQL))
                    if ACTIVE_INDEX not in _index_names(conn, "penalties"):
                        conn.execute(text(MYSQL_ACTIVE_INDEX_SQL))
                else:
                    conn.execute(text(PARTIAL_INDEX_SQL))
            except Exception as e:
                app.logger.error(f"[db] ERROR: {e}")
                raise

        app.logger.info(
            f"[db] ensured {ACTIVE_INDEX} on {dialect} "
            f"(null->pending={pending}, null->paid={paid}, superseded removed={removed})"
        )
        return True
