"""
Domain error taxonomy.

Services raise these directly; they are HTTPException subclasses so FastAPI
renders them with the right status and a `detail` message.
"""
from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Malformed input. Not retryable."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PermissionDeniedError(HTTPException):

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    """Entity does not exist or lies outside the caller's company."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """State-machine violation; the caller may refetch and retry."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds what is available. Carries the available amount."""

    def __init__(self, item_name: str, available: int, requested: int):
        self.item_name = item_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for '{item_name}': {available} available, {requested} requested"
        )
