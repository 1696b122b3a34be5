"""
Tests for borrowing and returning items.

Covers:
- borrow due dates from settings, item availability, restrictions
- return blocked (402) while a penalty is unpaid, allowed after payment
- ownership checks and the caller's transaction list
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from libtrack.extensions import db
from libtrack.models import Book, PenaltyStatus, ResearchPaper, Transaction


class TestBorrow:
    def test_student_borrow_uses_student_days(self, client, student_headers, make_book):
        book = make_book()

        resp = client.post("/transactions/borrow", json={"book_id": book.book_id}, headers=student_headers)

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["status"] == "Borrowed"
        assert data["due_date"] == (date.today() + timedelta(days=3)).isoformat()
        assert data["reference_number"].startswith(f"REF-{date.today():%Y%m%d}-")
        db.session.expire_all()
        assert db.session.get(Book, book.book_id).status == "Borrowed"

    def test_faculty_borrow_research_paper(self, client, make_user, headers_for):
        faculty = make_user(position="Faculty")
        paper = ResearchPaper(research_title="On Fines", authors="B. Author")
        db.session.add(paper)
        db.session.commit()

        resp = client.post("/transactions/borrow", json={"research_paper_id": paper.research_paper_id},
                           headers=headers_for(faculty))

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["item_title"] == "On Fines"
        assert data["due_date"] == (date.today() + timedelta(days=90)).isoformat()

    def test_exactly_one_item(self, client, student_headers):
        assert client.post("/transactions/borrow", json={}, headers=student_headers).status_code == 400
        resp = client.post("/transactions/borrow", json={"book_id": 1, "research_paper_id": 1},
                           headers=student_headers)
        assert resp.status_code == 400

    def test_unavailable_book(self, client, student_headers, make_book):
        book = make_book(status="Borrowed")
        resp = client.post("/transactions/borrow", json={"book_id": book.book_id}, headers=student_headers)
        assert resp.status_code == 409

    def test_restricted_user(self, client, make_user, headers_for, make_book):
        user = make_user(restriction=True)
        resp = client.post("/transactions/borrow", json={"book_id": make_book().book_id}, headers=headers_for(user))
        assert resp.status_code == 403

    def test_missing_book(self, client, student_headers):
        assert client.post("/transactions/borrow", json={"book_id": 404}, headers=student_headers).status_code == 404


class TestReturn:
    def test_unpaid_penalty_blocks_return_until_paid(self, client, student, student_headers, admin_headers,
                                                     service, make_borrow):
        t = make_borrow(student, days_overdue=2)
        pid = service.reconcile(t.transaction_id, student.user_id, 10).penalty_id

        resp = client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers)

        assert resp.status_code == 402
        unpaid = resp.get_json()["details"]["unpaid_penalties"]
        assert unpaid == [{
            "transaction_id": t.transaction_id,
            "penalty_id": pid,
            "fine": 10.0,
            "status": PenaltyStatus.PENDING.value,
        }]

        client.put(f"/penalties/{pid}/pay", headers=admin_headers)
        resp = client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers)

        assert resp.status_code == 200
        db.session.expire_all()
        returned = db.session.get(Transaction, t.transaction_id)
        assert returned.status == "Returned"
        assert returned.return_date is not None
        assert returned.book.status == "Available"

    def test_waived_penalty_allows_return(self, client, student, student_headers, make_borrow, make_penalty):
        t = make_borrow(student)
        make_penalty(t, status=PenaltyStatus.WAIVED)
        assert client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers).status_code == 200

    def test_pending_row_blocks_return_behind_newer_paid_row(self, client, student, student_headers,
                                                             make_borrow, make_penalty):
        t = make_borrow(student, days_overdue=3)
        now = datetime.utcnow()
        pending = make_penalty(t, fine="20", updated_at=now - timedelta(days=1))
        make_penalty(t, fine="5", status=PenaltyStatus.PAID, updated_at=now)

        resp = client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers)

        assert resp.status_code == 402
        [unpaid] = resp.get_json()["details"]["unpaid_penalties"]
        assert unpaid["penalty_id"] == pending.penalty_id
        assert unpaid["fine"] == 20.0

    def test_paid_penalty_allows_return(self, client, student, student_headers, make_borrow, make_penalty):
        t = make_borrow(student)
        make_penalty(t, status=PenaltyStatus.PAID)
        assert client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers).status_code == 200

    def test_returned_item_stops_accruing(self, client, student, student_headers, service, make_borrow):
        t = make_borrow(student, days_overdue=-1)
        client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers)

        summary = service.process_overdue(date.today() + timedelta(days=5))
        assert summary["total_processed"] == 0

    def test_cannot_return_twice(self, client, student, student_headers, make_borrow):
        t = make_borrow(student, days_overdue=-1)
        client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers)
        assert client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers).status_code == 409

    def test_other_users_transaction(self, client, make_user, student_headers, admin_headers, make_borrow):
        t = make_borrow(make_user(), days_overdue=-1)
        assert client.post(f"/transactions/{t.transaction_id}/return", headers=student_headers).status_code == 403
        assert client.post(f"/transactions/{t.transaction_id}/return", headers=admin_headers).status_code == 200

    def test_missing_transaction(self, client, student_headers):
        assert client.post("/transactions/31337/return", headers=student_headers).status_code == 404


def test_my_transactions(client, student, student_headers, make_user, make_borrow):
    mine = make_borrow(student)
    make_borrow(make_user())

    data = client.get("/transactions/my", headers=student_headers).get_json()["data"]
    assert [t["transaction_id"] for t in data] == [mine.transaction_id]
