"""Domain exception raised by the filler and service layers."""

from __future__ import annotations

from typing import Optional

from .models import ErrorCode


class PDFPrefillError(RuntimeError):
    """Domain-specific exception for service errors."""

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        return {
            "code": self.code.value if self.code else None,
            "message": self.message,
        }
