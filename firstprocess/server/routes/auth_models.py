"""
Pydantic models and custom exceptions for session and password endpoints.
"""

from pydantic import BaseModel

from firstprocess.server.constants import PASSWORD_MIN_LENGTH


class InvalidPasswordError(Exception):
    def __init__(
        self,
        message: str = f'Password must be at least {PASSWORD_MIN_LENGTH} characters',
    ):
        super().__init__(message)


class PasswordUpdate(BaseModel):
    # Validated in the service so the error body matches the API contract.
    password: str | None = None
