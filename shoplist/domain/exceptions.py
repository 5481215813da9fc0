"""
Domain exceptions.
"""


class DomainException(Exception):
    """Base exception for the shoplist domain."""

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class CartLimitError(DomainException):
    """Raised when a user already owns the maximum number of carts."""

    def __init__(self, max_carts: int = None, message: str = "Cart limit reached"):
        super().__init__(message=message, code="cart/limit-exceeded")
        self.max_carts = max_carts


class ValidationError(DomainException):
    """Raised when user input is rejected before any persistence attempt."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message=message, code="VALIDATION_ERROR")
        self.field = field


class InvalidOperationError(DomainException):
    """Raised when an operation is invalid for the current state."""

    def __init__(self, message: str, operation: str = None, state: str = None):
        super().__init__(message=message, code="INVALID_OPERATION")
        self.operation = operation
        self.state = state
