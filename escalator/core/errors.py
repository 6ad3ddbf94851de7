"""Error taxonomy for the escalation engine.

Services raise these; routers translate them to HTTP status codes and the
timer service logs them at the job boundary.
"""


class EscalatorError(Exception):
    """Base class for escalation engine errors."""


class ValidationError(EscalatorError):
    """Malformed or missing input, rejected before any state mutation."""


class NotFoundError(EscalatorError):
    """A referenced group, user, subscriber or ticket does not exist."""


class ConflictError(EscalatorError):
    """Concurrent modification that could not be reconciled."""


class TransportError(EscalatorError):
    """The paging queue or a notification provider failed."""
