from typing import Optional


class DomainError(Exception):
    """Base class for errors the web layer turns into 4xx responses."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class ConflictError(DomainError):
    """Illegal or concurrent state transition."""


class InsufficientFundsError(DomainError):
    pass
