from __future__ import annotations

from dataclasses import dataclass

from fastapi import status


@dataclass
class RegistryError(Exception):
    """Single error type raised by the allocation and retirement engine.

    `status_code` is HTTP shaped so the API layer can forward it as is.
    """

    code: str
    message: str
    status_code: int = status.HTTP_409_CONFLICT

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}

    @classmethod
    def not_found(cls, message: str = "Resource not found.") -> "RegistryError":
        return cls(code="NOT_FOUND", message=message, status_code=status.HTTP_404_NOT_FOUND)

    @classmethod
    def conflict(cls, message: str) -> "RegistryError":
        return cls(code="CONFLICT", message=message, status_code=status.HTTP_409_CONFLICT)

    @classmethod
    def unprocessable(cls, message: str) -> "RegistryError":
        return cls(
            code="UNPROCESSABLE_INPUT",
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        )

    @classmethod
    def internal(cls, message: str) -> "RegistryError":
        return cls(
            code="INTERNAL",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
