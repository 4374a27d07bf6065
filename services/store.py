"""SQLAlchemy backed stores for books, loans and feedback."""
from __future__ import annotations

from typing import Optional

from models import Book, Feedback, Loan, db


class CatalogStore:
    def get_book_by_id(self, book_id: int, for_update: bool = False) -> Optional[Book]:
        if for_update:
            return db.session.execute(
                db.select(Book).where(Book.id == book_id).with_for_update()
            ).scalar_one_or_none()
        return db.session.get(Book, book_id)

    def save_book(self, book: Book) -> Book:
        db.session.add(book)
        db.session.flush()
        return book

    def displayable_books(self, viewer_id: int):
        return (
            db.select(Book)
            .where(Book.archived.is_(False), Book.shareable.is_(True), Book.owner_id != viewer_id)
            .order_by(Book.created_at.desc(), Book.id.desc())
        )

    def books_by_owner(self, owner_id: int):
        return db.select(Book).where(Book.owner_id == owner_id).order_by(Book.created_at.desc(), Book.id.desc())


class LoanStore:
    def find_outstanding_loan(self, book_id: int, borrower_id: int) -> Optional[Loan]:
        return db.session.execute(
            db.select(Loan).where(
                Loan.book_id == book_id,
                Loan.user_id == borrower_id,
                Loan.returned.is_(False),
            )
        ).scalar_one_or_none()

    def find_returned_unapproved(self, book_id: int, owner_id: int) -> Optional[Loan]:
        return db.session.execute(
            db.select(Loan)
            .join(Book, Loan.book_id == Book.id)
            .where(
                Loan.book_id == book_id,
                Book.owner_id == owner_id,
                Loan.returned.is_(True),
                Loan.return_approved.is_(False),
            )
            .order_by(Loan.created_at, Loan.id)
            .limit(1)
        ).scalar_one_or_none()

    def exists_outstanding_loan(self, book_id: int, borrower_id: int) -> bool:
        return self.find_outstanding_loan(book_id, borrower_id) is not None

    def save_loan(self, loan: Loan) -> Loan:
        db.session.add(loan)
        db.session.flush()
        return loan

    def borrowed_by(self, borrower_id: int):
        return db.select(Loan).where(Loan.user_id == borrower_id).order_by(Loan.created_at.desc(), Loan.id.desc())

    def returned_to(self, owner_id: int):
        return (
            db.select(Loan)
            .join(Book, Loan.book_id == Book.id)
            .where(Book.owner_id == owner_id, Loan.returned.is_(True))
            .order_by(Loan.created_at.desc(), Loan.id.desc())
        )


class FeedbackStore:
    def save_feedback(self, feedback: Feedback) -> Feedback:
        db.session.add(feedback)
        db.session.flush()
        return feedback

    def by_book(self, book_id: int):
        return db.select(Feedback).where(Feedback.book_id == book_id).order_by(Feedback.created_at.desc(), Feedback.id.desc())
