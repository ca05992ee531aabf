from __future__ import annotations


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketValidationError(TicketServiceError):
    """Raised when required input is missing or malformed."""


class InvalidValueError(TicketValidationError):
    """Raised when a field is given a literal outside its allowed set."""

    def __init__(self, field: str, value: object, allowed: tuple[str, ...]) -> None:
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(f"{field} must be {'|'.join(allowed)}")


class InvalidTransitionError(TicketServiceError):
    """Raised when attempting to move a ticket along an edge the lifecycle does not allow."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition: {current} -> {requested}")


class ForbiddenChangeError(TicketServiceError):
    """Raised when the actor's role may not mutate the requested field."""

    def __init__(self, role: str, field: str) -> None:
        self.role = role
        self.field = field
        super().__init__(f"{role.capitalize()} cannot change {field.replace('_', ' ')}")


class NotFoundError(TicketServiceError):
    """Raised when a referenced record could not be located."""


class TicketNotFoundError(NotFoundError):
    """Raised when a ticket could not be located."""

    def __init__(self, ticket_id: str) -> None:
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class ActorNotFoundError(NotFoundError):
    """Raised when the acting user could not be resolved."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Actor {email} not found")


class DependencyFailureError(TicketServiceError):
    """Raised when the backing store is unreachable or rejects an operation."""


class ClassifierFailure(Exception):
    """Raised by triage classifiers; always absorbed by the triage adapter."""
