"""Book ratings."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import Feedback, db

from . import guards
from .errors import NotFoundError, Outcome, ValidationError
from .guards import Actor
from .pages import PageResponse, paginate
from .store import CatalogStore, FeedbackStore
from .tokens import Clock, system_clock

MIN_RATING = 0
MAX_RATING = 5


def parse_rating(value: Any) -> float:
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise ValidationError('rating must be a number') from None
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f'rating must be between {MIN_RATING} and {MAX_RATING}')
    return rating


class FeedbackService:
    def __init__(
        self,
        catalog: Optional[CatalogStore] = None,
        feedbacks: Optional[FeedbackStore] = None,
        clock: Clock = system_clock,
    ):
        self.catalog = catalog or CatalogStore()
        self.feedbacks = feedbacks or FeedbackStore()
        self.clock = clock

    def submit(self, book_id: int, rating: float, comment: Optional[str], actor: Actor) -> Outcome:
        # No loan history is required to rate a book.
        try:
            book = self.catalog.get_book_by_id(book_id)
            if book is None:
                return Outcome.failure(NotFoundError(f'No book found with ID::{book_id}'))
            check = guards.can_give_feedback(book, actor)
            if not check.ok:
                current_app.logger.warning(
                    'Feedback on book %s by user %s denied: %s', book.id, actor.id, check.reason.value
                )
                return check
            feedback = self.feedbacks.save_feedback(
                Feedback(
                    book_id=book.id,
                    author_id=actor.id,
                    rating=rating,
                    comment=comment,
                    created_at=self.clock(),
                )
            )
            db.session.commit()
            return Outcome.success(feedback.id)
        except SQLAlchemyError as exc:
            current_app.logger.exception('Feedback transaction failed: %s', exc)
            db.session.rollback()
            raise

    def submit_request(self, data: Mapping[str, Any], actor: Actor) -> Outcome:
        try:
            book_id = int(data.get('book_id'))
        except (TypeError, ValueError):
            raise ValidationError('book_id is required') from None
        comment = data.get('comment')
        if comment is not None and not isinstance(comment, str):
            raise ValidationError('comment must be a string')
        return self.submit(book_id, parse_rating(data.get('rating')), comment, actor)

    def find_by_book(self, book_id: int, actor: Actor, page: int, size: int) -> PageResponse:
        return paginate(
            self.feedbacks.by_book(book_id),
            page,
            size,
            lambda feedback: feedback.to_dict(viewer_id=actor.id),
        )
