"""
Domain errors raised below the route layer.
Handlers registered in main.py translate them into JSON responses.
"""
from typing import Dict, List


class InvalidInput(Exception):
    """Field-level validation failure (422); errors maps field -> messages."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        first = next(iter(errors.values()))[0]
        extra = sum(len(v) for v in errors.values()) - 1
        message = first if not extra else f"{first} (and {extra} more error{'s' if extra > 1 else ''})"
        super().__init__(message)
        self.message = message


class UploadValidationError(InvalidInput):
    """One or more upload constraints were violated."""


class StorageError(Exception):
    """Writing to or deleting from the blob store failed (500)."""


class VisionError(Exception):
    """The vision API call failed: transport, status or malformed body (500)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def invalid(field: str, message: str) -> InvalidInput:
    return InvalidInput({field: [message]})
