class DomainError(Exception):
    """Base exception for business rule violations."""

    code = "domain_error"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "validation_error"


class UnauthorizedError(DomainError):
    """Raised when the actor lacks the capability for an action."""

    code = "unauthorized"


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    code = "not_found"


class StateConflictError(DomainError):
    """Raised when an entity is no longer in the state an action expects.

    Recoverable: the caller should reload the entity and decide again.
    """

    code = "state_conflict"
