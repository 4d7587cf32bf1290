"""
Typed error hierarchy for the investment platform.

Domain code raises these instead of setting HTTP statuses itself. The API
layer registers one handler that turns any PlatformError into a JSON body:

    {"detail": "<message>", "code": "<CODE>"}

    PlatformError (400)
    +-- ValidationError (400)
    |   +-- InsufficientFundsError (400)
    +-- DuplicateError (400)
    +-- NotAuthorizedError (401)
    +-- NotFoundError (404)
"""

from decimal import Decimal
from typing import Optional


class PlatformError(Exception):
    """Base class for all platform errors"""

    code: str = "PLATFORM_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PlatformError):
    """Request violates a business rule"""

    code = "VALIDATION_ERROR"


class InsufficientFundsError(ValidationError):
    """A debit would take the balance below zero"""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, user_id: str, balance: Decimal, requested: Decimal):
        self.user_id = user_id
        self.balance = balance
        self.requested = requested
        super().__init__("Insufficient balance")


class DuplicateError(PlatformError):
    """A unique field is already taken"""

    code = "DUPLICATE"


class NotAuthorizedError(PlatformError):
    """Requester may not see or change the resource"""

    code = "NOT_AUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFoundError(PlatformError):
    """Referenced document does not exist"""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")
