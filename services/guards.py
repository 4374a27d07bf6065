"""Ownership and visibility rules shared by lending and feedback."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet

from .errors import Outcome, Reason


@dataclass(frozen=True)
class Actor:
    id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user) -> 'Actor':
        return cls(id=user.id, roles=user.role_names)


def is_owner(book, actor: Actor) -> bool:
    return book.owner_id == actor.id


def is_borrowable(book) -> bool:
    return not book.archived and book.shareable


def can_borrow(book, actor: Actor) -> Outcome:
    if not is_borrowable(book):
        return Outcome.denied(Reason.ARCHIVED_OR_NOT_SHAREABLE)
    if is_owner(book, actor):
        return Outcome.denied(Reason.OWN_BOOK)
    return Outcome.success(book)


def can_give_feedback(book, actor: Actor) -> Outcome:
    return can_borrow(book, actor)
