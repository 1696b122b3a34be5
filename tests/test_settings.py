"""Tests for fine settings: defaults, fallback on read errors, admin updates."""

from __future__ import annotations

from decimal import Decimal

from libtrack.extensions import db
from libtrack.models import ActivityLog, SystemSettings
from libtrack.services.settings_service import DEFAULT_SETTINGS, SettingsService

DEFAULTS_JSON = {
    "student_daily_fine": 5.0,
    "faculty_daily_fine": 11.0,
    "student_borrow_days": 3,
    "faculty_borrow_days": 90,
}


class TestGetFineSettings:
    def test_defaults_on_empty_table(self, app):
        assert SettingsService.get_fine_settings() == DEFAULT_SETTINGS

    def test_defaults_when_table_unreadable(self, app):
        db.session.commit()
        SystemSettings.__table__.drop(db.engine)
        assert SettingsService.get_fine_settings() == DEFAULT_SETTINGS

    def test_reads_first_row(self, app):
        db.session.add(SystemSettings(student_daily_fine=Decimal("6.50"), faculty_daily_fine=Decimal("12"),
                                      student_borrow_days=5, faculty_borrow_days=60))
        db.session.commit()

        settings = SettingsService.get_fine_settings()
        assert settings["student_daily_fine"] == Decimal("6.50")
        assert settings["student_borrow_days"] == 5

    def test_route(self, client, student_headers):
        resp = client.get("/settings/fines", headers=student_headers)
        assert resp.get_json() == {"success": True, "data": DEFAULTS_JSON}


class TestUpdateFineSettings:
    def test_admin_update_creates_row(self, client, admin_headers):
        resp = client.put("/settings/fines", json={"faculty_daily_fine": "12.5", "student_borrow_days": 7},
                          headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {**DEFAULTS_JSON, "faculty_daily_fine": 12.5, "student_borrow_days": 7}
        assert SystemSettings.query.count() == 1
        assert ActivityLog.query.filter_by(action="SETTINGS_UPDATED").count() == 1

    def test_update_twice_keeps_one_row(self, client, admin_headers):
        client.put("/settings/fines", json={"student_daily_fine": 6}, headers=admin_headers)
        client.put("/settings/fines", json={"student_daily_fine": 8}, headers=admin_headers)

        assert SystemSettings.query.count() == 1
        assert SettingsService.get_fine_settings()["student_daily_fine"] == Decimal("8")

    def test_rejects_bad_values(self, client, admin_headers):
        for body in ({"student_daily_fine": -1}, {"student_daily_fine": "abc"},
                     {"faculty_borrow_days": 0}, {}):
            resp = client.put("/settings/fines", json=body, headers=admin_headers)
            assert resp.status_code == 400, body

    def test_requires_admin(self, client, student_headers):
        resp = client.put("/settings/fines", json={"student_daily_fine": 1}, headers=student_headers)
        assert resp.status_code == 403
