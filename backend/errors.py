"""Ledger error taxonomy.

Core helpers raise these; main.py translates them to JSON responses with the
same ``{"detail": ...}`` shape FastAPI uses for HTTPException.
"""


class LedgerError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class LedgerValidationError(LedgerError):
    """Malformed or inconsistent input. The ledger is left untouched."""
    status_code = 400


class PermissionDeniedError(LedgerError):
    status_code = 403


class NotFoundError(LedgerError):
    """An unknown user, group, expense, friendship or notification id."""
    status_code = 404


class ConflictError(LedgerError):
    """A request that collides with existing state and cannot be merged."""
    status_code = 409
