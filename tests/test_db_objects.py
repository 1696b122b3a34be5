"""
Tests for storage-level setup and the cleanup operation.

Covers:
- ensure_db_objects on a legacy table (NULL statuses, duplicates, missing index)
- idempotence of ensure_db_objects
- dialects without partial index support
- PenaltyService.cleanup and its HTTP/CLI entry points
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import inspect, text

from libtrack.db_objects import ACTIVE_INDEX, ensure_db_objects
from libtrack.extensions import db
from libtrack.models import Penalty, PenaltyStatus

LEGACY_PENALTIES_DDL = """
CREATE TABLE penalties (
    penalty_id INTEGER PRIMARY KEY,
    transaction_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    fine NUMERIC(10, 2) NOT NULL DEFAULT 0,
    penalty_type VARCHAR(20) NOT NULL DEFAULT 'overdue',
    status VARCHAR(20),
    waive_reason TEXT,
    waived_by VARCHAR(200),
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
)
"""


def _index_names():
    return {ix["name"] for ix in inspect(db.engine).get_indexes("penalties")}


def _legacy_insert(penalty_id, transaction_id, user_id, fine, status):
    db.session.execute(
        text(
            "INSERT INTO penalties (penalty_id, transaction_id, user_id, fine, status, created_at, updated_at) "
            "VALUES (:id, :t, :u, :fine, :status, :now, :now)"
        ),
        {"id": penalty_id, "t": transaction_id, "u": user_id, "fine": fine, "status": status,
         "now": datetime.utcnow()},
    )


class TestEnsureDbObjects:
    def test_index_installed(self, app):
        assert ACTIVE_INDEX in _index_names()

    def test_idempotent(self, app):
        assert ensure_db_objects(app) is True
        assert ensure_db_objects(app) is True
        assert ACTIVE_INDEX in _index_names()

    def test_skips_when_table_missing(self, app):
        db.session.commit()
        db.drop_all()
        assert ensure_db_objects(app) is False

    def test_migrates_null_statuses(self, app):
        db.session.commit()
        Penalty.__table__.drop(db.engine)
        db.session.execute(text(LEGACY_PENALTIES_DDL))
        _legacy_insert(1, 10, 100, 15, None)   # owed  -> pending
        _legacy_insert(2, 11, 100, 0, None)    # zero  -> paid
        _legacy_insert(3, 12, 100, 20, "Paid")
        db.session.commit()

        ensure_db_objects(app)

        rows = db.session.execute(text("SELECT penalty_id, status FROM penalties ORDER BY penalty_id")).all()
        assert [tuple(r) for r in rows] == [(1, "Pending Payment"), (2, "Paid"), (3, "Paid")]
        assert ACTIVE_INDEX in _index_names()

    def test_legacy_duplicates_removed_before_index(self, app):
        db.session.commit()
        Penalty.__table__.drop(db.engine)
        db.session.execute(text(LEGACY_PENALTIES_DDL))
        _legacy_insert(1, 10, 100, 5, None)
        _legacy_insert(2, 10, 100, 10, "Pending Payment")
        _legacy_insert(3, 10, 100, 15, "Pending Payment")
        _legacy_insert(4, 10, 100, 8, "Paid")
        _legacy_insert(5, 11, 100, 3, "Pending Payment")
        db.session.commit()

        ensure_db_objects(app)

        rows = db.session.execute(text("SELECT penalty_id FROM penalties ORDER BY penalty_id")).scalars().all()
        assert rows == [3, 4, 5]

    def test_unsupported_dialect_warns_and_skips_index(self, app, monkeypatch, caplog, drop_active_index):
        drop_active_index()
        monkeypatch.setattr(db.engine.dialect, "name", "mssql")

        with caplog.at_level(logging.WARNING):
            assert ensure_db_objects(app) is False

        monkeypatch.undo()
        assert ACTIVE_INDEX not in _index_names()
        assert "[db] mssql: no partial unique index support" in caplog.text

    def test_mariadb_takes_generated_key_branch(self):
        from libtrack.db_objects import GENERATED_KEY_DIALECTS, PARTIAL_INDEX_DIALECTS

        assert "mariadb" in GENERATED_KEY_DIALECTS
        assert "mysql" in GENERATED_KEY_DIALECTS
        assert set(PARTIAL_INDEX_DIALECTS) == {"sqlite", "postgresql"}


class TestCleanup:
    def _duplicates(self, student, make_borrow, make_penalty, drop_active_index):
        drop_active_index()
        t = make_borrow(student)
        base = datetime.utcnow() - timedelta(days=5)
        make_penalty(t, fine="5", updated_at=base)
        make_penalty(t, fine="10", updated_at=base + timedelta(days=1))
        make_penalty(t, fine="7", status=PenaltyStatus.PAID, updated_at=base + timedelta(days=2))
        keep = make_penalty(t, fine="12", updated_at=base + timedelta(days=3))
        return t, keep

    def test_keeps_newest_non_paid_and_all_paid(self, service, student, make_borrow, make_penalty,
                                                drop_active_index):
        t, keep = self._duplicates(student, make_borrow, make_penalty, drop_active_index)

        assert service.cleanup() == {"records_deleted": 2}

        db.session.expire_all()
        rows = Penalty.query.filter_by(transaction_id=t.transaction_id).order_by(Penalty.penalty_id).all()
        assert [(r.status, float(r.fine)) for r in rows] == [(PenaltyStatus.PAID, 7.0), (PenaltyStatus.PENDING, 12.0)]
        assert rows[1].penalty_id == keep.penalty_id

    def test_cleanup_on_clean_table(self, service):
        assert service.cleanup() == {"records_deleted": 0}

    def test_cleanup_route(self, client, admin_headers, student, make_borrow, make_penalty, drop_active_index):
        self._duplicates(student, make_borrow, make_penalty, drop_active_index)

        resp = client.post("/penalties/cleanup", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["records_deleted"] == 2

    def test_cleanup_cli(self, app, student, make_borrow, make_penalty, drop_active_index):
        self._duplicates(student, make_borrow, make_penalty, drop_active_index)

        result = app.test_cli_runner().invoke(args=["cleanup-penalties"])
        assert result.exit_code == 0
        assert "Deleted 2 superseded penalty row(s)." in result.output

    def test_init_db_seeds_settings(self, app):
        from libtrack.models import SystemSettings

        result = app.test_cli_runner().invoke(args=["init-db"])
        assert result.exit_code == 0
        assert "Database ready." in result.output

        db.session.expire_all()
        row = SystemSettings.query.one()
        assert float(row.student_daily_fine) == 5.0
        assert row.faculty_borrow_days == 90
