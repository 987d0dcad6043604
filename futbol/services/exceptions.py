"""
Domain errors raised by the service layer.

All of them subclass ValueError so callers that only care about
"bad request" can keep catching ValueError; routes check the specific
classes first to pick the right status code.
"""


class NotFoundError(ValueError):
    """A referenced game or user does not exist."""


class PermissionDeniedError(ValueError):
    """The caller is authenticated but not allowed to perform the action."""


class ConcurrentUpdateError(ValueError):
    """The game row changed underneath us; the caller should retry."""

    def __init__(self, message: str = "El partido fue modificado por otra operación, intentá de nuevo"):
        super().__init__(message)


class VotingRuleError(ValueError):
    """Vote rejected by a calendar rule. Carries a short title plus details."""

    def __init__(self, title: str, details: str):
        super().__init__(details)
        self.title = title
        self.details = details


class ClosedMonthError(VotingRuleError):
    def __init__(self, details: str = "No puedes votar en meses pasados"):
        super().__init__("Mes cerrado", details)


class PastDateError(VotingRuleError):
    def __init__(self, details: str = "No puedes votar por una fecha que ya ha pasado"):
        super().__init__("Fecha pasada", details)


class OutsideVotingWindowError(VotingRuleError):
    def __init__(self, details: str = "Solo puedes votar hasta 3 meses en el futuro"):
        super().__init__("Fuera del período de votación", details)
