"""Lending domain service: the borrow/return/approve lifecycle of a book."""
from __future__ import annotations

import enum
from contextlib import contextmanager
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Book, Loan, db

from . import guards
from .errors import NotFoundError, Outcome, Reason, ValidationError, text_value
from .files import FileStorage
from .guards import Actor
from .pages import PageResponse, paginate
from .store import CatalogStore, LoanStore
from .tokens import Clock, system_clock


class LoanState(str, enum.Enum):
    NONE = 'none'
    BORROWED = 'borrowed'
    RETURN_REQUESTED = 'return_requested'
    RETURN_APPROVED = 'return_approved'


def loan_state(loan: Optional[Loan]) -> LoanState:
    if loan is None:
        return LoanState.NONE
    if not loan.returned:
        return LoanState.BORROWED
    if not loan.return_approved:
        return LoanState.RETURN_REQUESTED
    return LoanState.RETURN_APPROVED


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


class LendingService:
    """Book registration, status toggles and the lending state machine.

    Every mutating operation reads the current book and loan rows, runs the
    guards, writes, and commits as one transaction. A denied or failed
    operation rolls back and returns the failure as an ``Outcome``.
    """

    def __init__(
        self,
        catalog: Optional[CatalogStore] = None,
        loans: Optional[LoanStore] = None,
        files: Optional[FileStorage] = None,
        clock: Clock = system_clock,
    ):
        self.catalog = catalog or CatalogStore()
        self.loans = loans or LoanStore()
        self.files = files
        self.clock = clock

    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            current_app.logger.exception('%s transaction failed: %s', action, exc)
            db.session.rollback()
            raise

    @staticmethod
    def _finish(outcome: Outcome) -> Outcome:
        if outcome.ok:
            db.session.commit()
        else:
            db.session.rollback()
        return outcome

    def _deny(self, action: str, book: Book, actor: Actor, outcome: Outcome) -> Outcome:
        current_app.logger.warning(
            '%s of book %s by user %s denied: %s', action, book.id, actor.id, outcome.reason.value
        )
        return outcome

    def _load_book(self, book_id: int, for_update: bool = False):
        book = self.catalog.get_book_by_id(book_id, for_update=for_update)
        if book is None:
            return None, Outcome.failure(NotFoundError(f'No book found with ID::{book_id}'))
        return book, None

    # Catalog

    def save_book(self, data: Mapping[str, Any], actor: Actor) -> Outcome:
        title = text_value(data, 'title').strip()
        author_name = text_value(data, 'author_name').strip()
        if not title or not author_name:
            raise ValidationError('title and author_name are required')
        with self._transaction('Save book'):
            book = self.catalog.save_book(
                Book(
                    title=title,
                    author_name=author_name,
                    isbn=text_value(data, 'isbn').strip() or None,
                    synopsis=text_value(data, 'synopsis') or None,
                    shareable=_flag(data.get('shareable', False)),
                    archived=False,
                    owner_id=actor.id,
                    created_at=self.clock(),
                )
            )
            current_app.logger.info('Book %s registered by user %s', book.id, actor.id)
            return self._finish(Outcome.success(book.id))

    def find_book(self, book_id: int) -> Outcome:
        book, missing = self._load_book(book_id)
        return missing or Outcome.success(book)

    def find_displayable_books(self, actor: Actor, page: int, size: int) -> PageResponse:
        return paginate(self.catalog.displayable_books(actor.id), page, size, Book.to_dict)

    def find_books_by_owner(self, actor: Actor, page: int, size: int) -> PageResponse:
        return paginate(self.catalog.books_by_owner(actor.id), page, size, Book.to_dict)

    def find_borrowed_books(self, actor: Actor, page: int, size: int) -> PageResponse:
        return paginate(self.loans.borrowed_by(actor.id), page, size, Loan.to_dict)

    def find_returned_books(self, actor: Actor, page: int, size: int) -> PageResponse:
        return paginate(self.loans.returned_to(actor.id), page, size, Loan.to_dict)

    # Owner-only status changes

    def _toggle(self, action: str, attr: str, book_id: int, actor: Actor) -> Outcome:
        with self._transaction(action):
            book, missing = self._load_book(book_id)
            if missing:
                return self._finish(missing)
            if not guards.is_owner(book, actor):
                return self._finish(self._deny(action, book, actor, Outcome.denied(Reason.NOT_OWNER)))
            setattr(book, attr, not getattr(book, attr))
            self.catalog.save_book(book)
            current_app.logger.info('Book %s %s set to %s', book.id, attr, getattr(book, attr))
            return self._finish(Outcome.success(book.id))

    def toggle_shareable(self, book_id: int, actor: Actor) -> Outcome:
        return self._toggle('Toggle shareable', 'shareable', book_id, actor)

    def toggle_archived(self, book_id: int, actor: Actor) -> Outcome:
        return self._toggle('Toggle archived', 'archived', book_id, actor)

    def upload_cover(self, book_id: int, source, actor: Actor) -> Outcome:
        with self._transaction('Upload cover'):
            book, missing = self._load_book(book_id)
            if missing:
                return self._finish(missing)
            if not guards.is_owner(book, actor):
                return self._finish(self._deny('Upload cover', book, actor, Outcome.denied(Reason.NOT_OWNER)))
            book.cover = self.files.save_file(source, actor.id)
            self.catalog.save_book(book)
            return self._finish(Outcome.success(book.id))

    # Lending lifecycle

    def borrow(self, book_id: int, actor: Actor) -> Outcome:
        with self._transaction('Borrow'):
            book, missing = self._load_book(book_id, for_update=True)
            if missing:
                return self._finish(missing)
            check = guards.can_borrow(book, actor)
            if not check.ok:
                return self._finish(self._deny('Borrow', book, actor, check))
            if self.loans.exists_outstanding_loan(book.id, actor.id):
                return self._finish(self._deny('Borrow', book, actor, Outcome.denied(Reason.ALREADY_BORROWED)))
            try:
                loan = self.loans.save_loan(
                    Loan(
                        book_id=book.id,
                        user_id=actor.id,
                        returned=False,
                        return_approved=False,
                        created_at=self.clock(),
                    )
                )
            except IntegrityError:
                # a concurrent borrow won the outstanding-loan index
                db.session.rollback()
                return self._deny('Borrow', book, actor, Outcome.denied(Reason.ALREADY_BORROWED))
            current_app.logger.info('Book %s borrowed by user %s (loan %s)', book.id, actor.id, loan.id)
            return self._finish(Outcome.success(loan.id))

    def return_book(self, book_id: int, actor: Actor) -> Outcome:
        with self._transaction('Return'):
            book, missing = self._load_book(book_id)
            if missing:
                return self._finish(missing)
            check = guards.can_borrow(book, actor)
            if not check.ok:
                return self._finish(self._deny('Return', book, actor, check))
            loan = self.loans.find_outstanding_loan(book.id, actor.id)
            if loan_state(loan) is not LoanState.BORROWED:
                return self._finish(self._deny('Return', book, actor, Outcome.denied(Reason.NOT_BORROWED)))
            loan.returned = True
            self.loans.save_loan(loan)
            current_app.logger.info('Loan %s returned by user %s', loan.id, actor.id)
            return self._finish(Outcome.success(loan.id))

    def approve_return(self, book_id: int, actor: Actor) -> Outcome:
        with self._transaction('Approve return'):
            book, missing = self._load_book(book_id)
            if missing:
                return self._finish(missing)
            if not guards.is_borrowable(book):
                return self._finish(
                    self._deny('Approve return', book, actor, Outcome.denied(Reason.ARCHIVED_OR_NOT_SHAREABLE))
                )
            if not guards.is_owner(book, actor):
                return self._finish(self._deny('Approve return', book, actor, Outcome.denied(Reason.NOT_OWNER)))
            loan = self.loans.find_returned_unapproved(book.id, actor.id)
            if loan_state(loan) is not LoanState.RETURN_REQUESTED:
                return self._finish(
                    self._deny('Approve return', book, actor, Outcome.denied(Reason.NOT_RETURNED_YET))
                )
            loan.return_approved = True
            self.loans.save_loan(loan)
            current_app.logger.info('Return of loan %s approved by owner %s', loan.id, actor.id)
            return self._finish(Outcome.success(loan.id))
