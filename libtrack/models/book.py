from datetime import datetime
from libtrack.extensions import db


class Book(db.Model):
    __tablename__ = "books"

    book_id = db.Column(db.Integer, primary_key=True)
    book_title = db.Column(db.String(255), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=True)
    isbn = db.Column(db.String(32), unique=True, nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default="Available")  # Available/Borrowed

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class ResearchPaper(db.Model):
    __tablename__ = "research_papers"

    research_paper_id = db.Column(db.Integer, primary_key=True)
    research_title = db.Column(db.String(255), nullable=False, index=True)
    authors = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="Available")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
