from datetime import datetime
from libtrack.extensions import db


class Transaction(db.Model):
    __tablename__ = "transactions"
    __table_args__ = (
        # a transaction holds exactly one item
        db.CheckConstraint(
            "(book_id IS NULL) <> (research_paper_id IS NULL)",
            name="ck_transactions_single_item",
        ),
    )

    transaction_id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(40), unique=True, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.book_id"), nullable=True, index=True)
    research_paper_id = db.Column(
        db.Integer, db.ForeignKey("research_papers.research_paper_id"), nullable=True, index=True
    )

    transaction_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    due_date = db.Column(db.Date, nullable=True, index=True)
    return_date = db.Column(db.DateTime, nullable=True)

    transaction_type = db.Column(db.String(20), nullable=False, default="borrow")
    status = db.Column(db.String(20), nullable=False, default="Borrowed")  # Borrowed/Returned

    user = db.relationship("User", backref="transactions")
    book = db.relationship("Book", backref="transactions")
    research_paper = db.relationship("ResearchPaper", backref="transactions")

    @property
    def item_title(self) -> str:
        if self.book is not None:
            return self.book.book_title
        if self.research_paper is not None:
            return self.research_paper.research_title
        return "Unknown Item"
