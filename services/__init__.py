"""Service layer package for encapsulating business logic."""

from .errors import (  # noqa: F401
    AccountDisabledError,
    AuthenticationError,
    ConfigurationError,
    InvalidTokenError,
    LibraryError,
    NotFoundError,
    OperationNotPermittedError,
    Outcome,
    Reason,
    ValidationError,
)
from .guards import Actor  # noqa: F401
from .lending import LendingService  # noqa: F401
from .feedback import FeedbackService  # noqa: F401
from .tokens import TokenService, TokenSettings  # noqa: F401
from .auth import authenticate, get_current_actor, register_user, token_required  # noqa: F401
