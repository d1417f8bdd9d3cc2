"""
Pydantic models and custom exceptions for organization invitations.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, model_validator

from firstprocess.server.constants import ROLE_EDITOR


class InvitationError(Exception):
    """Base exception for invitation errors."""

    pass


class InvitationNotFoundError(InvitationError):
    """Raised when the invitation does not exist."""

    def __init__(self, message: str = 'Invite not found'):
        super().__init__(message)


class InvitationAlreadyAcceptedError(InvitationError):
    """Raised when an operation requires a pending invitation."""

    def __init__(self, message: str = 'Invitation has already been accepted'):
        super().__init__(message)


class EmailMismatchError(InvitationError):
    """Raised when the accepting user's email doesn't match the invitation email."""

    def __init__(self, message: str = 'Invite email mismatch'):
        super().__init__(message)


class SeatLimitExceededError(InvitationError):
    """Raised when the role's seat tier is full under an active subscription."""

    def __init__(self, tier: str, message: str | None = None):
        self.tier = tier
        super().__init__(
            message or f'No {tier} seats available. Upgrade your plan to add more.'
        )


class InvalidInvitationRoleError(InvitationError):
    """Raised when an invitation requests a role that cannot be invited."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f'Invalid role: {role}')


class InvitationCreate(BaseModel):
    """Request model for creating an invitation."""

    email: EmailStr
    role: str = ROLE_EDITOR


class InvitationCreateResponse(BaseModel):
    ok: bool = True
    inviteId: UUID
    duplicate: bool = False


class InvitationAccept(BaseModel):
    inviteId: UUID


class InvitationResend(BaseModel):
    """Request model for resending a link, by invitation or by email."""

    inviteId: UUID | None = None
    email: EmailStr | None = None

    @model_validator(mode='after')
    def check_target(self) -> 'InvitationResend':
        if self.inviteId is None and self.email is None:
            raise ValueError('Either inviteId or email is required')
        return self


class InvitationResendResponse(BaseModel):
    ok: bool = True
    emailMode: str


class OkResponse(BaseModel):
    ok: bool = True
