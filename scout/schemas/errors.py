"""
schemas/errors.py — Structured error response model

Shared by the ScoutError and RequestValidationError handlers in main.py.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    detail: list | None = None
