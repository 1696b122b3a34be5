from libtrack.models.book import Book, ResearchPaper
from libtrack.extensions import db


class BookRepo:
    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_research_paper(research_paper_id: int):
        return db.session.get(ResearchPaper, research_paper_id)
