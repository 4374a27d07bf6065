"""Error taxonomy and the tagged result returned by service operations."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional


class Reason(str, enum.Enum):
    OWN_BOOK = 'own-book'
    ALREADY_BORROWED = 'already-borrowed'
    NOT_BORROWED = 'not-borrowed'
    NOT_RETURNED_YET = 'not-returned-yet'
    NOT_OWNER = 'not-owner'
    ARCHIVED_OR_NOT_SHAREABLE = 'archived-or-not-shareable'


REASON_MESSAGES = {
    Reason.OWN_BOOK: 'You cannot borrow, return or rate your own book.',
    Reason.ALREADY_BORROWED: 'The requested book is already borrowed.',
    Reason.NOT_BORROWED: 'You did not borrow this book.',
    Reason.NOT_RETURNED_YET: 'The book is not returned yet. You cannot approve its return.',
    Reason.NOT_OWNER: 'Only the owner of the book can do this.',
    Reason.ARCHIVED_OR_NOT_SHAREABLE: 'The book is archived or not shareable.',
}


class LibraryError(RuntimeError):
    """Base class for library service failures."""


class NotFoundError(LibraryError):
    pass


class OperationNotPermittedError(LibraryError):
    def __init__(self, reason: Reason, message: Optional[str] = None):
        self.reason = Reason(reason)
        super().__init__(message or REASON_MESSAGES[self.reason])


class InvalidTokenError(LibraryError):
    pass


class AuthenticationError(LibraryError):
    pass


class AccountDisabledError(LibraryError):
    pass


class ValidationError(LibraryError):
    pass


class ConfigurationError(ValueError):
    """Raised at startup when required configuration is missing or malformed."""


@dataclass(frozen=True)
class Outcome:
    """Either a success value or the error that prevented it.

    Callers inspect ``ok`` or call ``unwrap()``, which raises the carried
    error so the HTTP layer can map it to a status code.
    """

    value: Any = None
    error: Optional[LibraryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[Reason]:
        return getattr(self.error, 'reason', None)

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: Any = None) -> 'Outcome':
        return cls(value=value)

    @classmethod
    def failure(cls, error: LibraryError) -> 'Outcome':
        return cls(error=error)

    @classmethod
    def denied(cls, reason: Reason) -> 'Outcome':
        return cls(error=OperationNotPermittedError(reason))


def text_value(data, key: str) -> str:
    """Return ``data[key]`` as a string, '' when absent, or reject non-strings."""
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value
