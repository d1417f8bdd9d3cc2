"""Service for managing organization invitations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.identity import IdentityService, IdentityUser
from firstprocess.server.auth.user_auth import AuthenticatedUser
from firstprocess.server.config import get_server_config
from firstprocess.server.constants import (
    ACCEPT_INVITE_PATH,
    INVITABLE_ROLES,
    NEW_PASSWORD_PATH,
    ROLE_EDITOR,
    ROLE_VIEWER,
)
from firstprocess.server.routes.org_invitation_models import (
    EmailMismatchError,
    InvalidInvitationRoleError,
    InvitationAlreadyAcceptedError,
    InvitationNotFoundError,
    SeatLimitExceededError,
)
from firstprocess.server.seats import SeatUsage, tier_for_role
from firstprocess.server.services.email_service import (
    EMAIL_MODE_INVITE,
    EMAIL_MODE_MAGIC_LINK,
    EMAIL_MODE_PASSWORD_RESET,
    EmailService,
)
from firstprocess.storage.org_invitation import OrgInvitation
from firstprocess.storage.org_invitation_store import (
    InvitationCreateResult,
    OrgInvitationStore,
    normalize_email,
)
from firstprocess.storage.org_member_store import (
    DuplicateMembershipError,
    OrgMemberStore,
)
from firstprocess.storage.org_store import OrgStore, OrgSubscriptionStore


class AccountKind(str, Enum):
    """State of the invitee's identity account, as seen by the provider."""

    NEW_USER = 'new-user'
    UNCONFIRMED = 'unconfirmed'
    NO_PASSWORD = 'no-password'
    HAS_PASSWORD = 'has-password'


@dataclass(frozen=True)
class ResendAction:
    kind: AccountKind
    link_type: str
    email_mode: str


# Every AccountKind maps to exactly one identity primitive.
RESEND_ACTIONS: dict[AccountKind, ResendAction] = {
    AccountKind.NEW_USER: ResendAction(AccountKind.NEW_USER, 'invite', EMAIL_MODE_INVITE),
    AccountKind.UNCONFIRMED: ResendAction(
        AccountKind.UNCONFIRMED, 'invite', EMAIL_MODE_INVITE
    ),
    AccountKind.NO_PASSWORD: ResendAction(
        AccountKind.NO_PASSWORD, 'recovery', EMAIL_MODE_PASSWORD_RESET
    ),
    AccountKind.HAS_PASSWORD: ResendAction(
        AccountKind.HAS_PASSWORD, 'magiclink', EMAIL_MODE_MAGIC_LINK
    ),
}


def classify_account(user: Optional[IdentityUser]) -> ResendAction:
    if user is None:
        kind = AccountKind.NEW_USER
    elif user.email_confirmed_at is None:
        kind = AccountKind.UNCONFIRMED
    elif not user.has_password:
        kind = AccountKind.NO_PASSWORD
    else:
        kind = AccountKind.HAS_PASSWORD
    return RESEND_ACTIONS[kind]


def build_accept_url(invitation: OrgInvitation) -> str:
    """Landing page the identity provider redirects invitees to."""
    site_url = get_server_config().site_url
    query = urlencode({'inviteId': str(invitation.id), 'em': invitation.email})
    return f'{site_url}{ACCEPT_INVITE_PATH}?{query}'


def build_new_password_url(email: str) -> str:
    site_url = get_server_config().site_url
    return f'{site_url}{NEW_PASSWORD_PATH}?{urlencode({"em": email})}'


class OrgInvitationService:
    """Service for organization invitation operations."""

    @staticmethod
    async def _issue_link(
        identity: IdentityService,
        email: str,
        redirect_to: str,
        role: str | None = None,
    ) -> tuple[ResendAction, str]:
        existing_user = await identity.get_user_by_email(email)
        action = classify_account(existing_user)
        data = {'invited_role': role} if role and action.link_type == 'invite' else None
        link = await identity.generate_link(
            action.link_type, email, redirect_to, data=data
        )
        return action, link

    @staticmethod
    async def create_invitation(
        org_id: UUID,
        email: str,
        role: str,
        inviter: AuthenticatedUser,
        identity: IdentityService,
    ) -> InvitationCreateResult:
        """Create a new organization invitation.

        This method:
        1. Validates the requested role
        2. Returns the existing pending invitation for the email, if any
        3. Checks a seat is free, counting members and pending invitations
        4. Creates the invitation
        5. Sends the invitation email

        Args:
            org_id: Organization UUID, derived from the inviter's membership
            email: Invitee's email address
            role: Role to assign on acceptance (editor, viewer)
            inviter: The authenticated user creating the invitation
            identity: Identity provider client used to issue the link

        Returns:
            InvitationCreateResult: The invitation, flagged when it already existed

        Raises:
            InvalidInvitationRoleError: If the role cannot be invited
            SeatLimitExceededError: If the role's seat tier is full
        """
        email = normalize_email(email)
        role = role.strip().lower()

        logger.info(
            'Creating organization invitation',
            extra={
                'org_id': str(org_id),
                'email': email,
                'role': role,
                'inviter_id': str(inviter.id),
            },
        )

        # Step 1: Validate role
        if role not in INVITABLE_ROLES:
            raise InvalidInvitationRoleError(role)

        # Step 2: Collapse onto an existing pending invitation
        existing = await OrgInvitationStore.get_pending_invitation(org_id, email)
        if existing:
            logger.info(
                'Pending invitation already exists',
                extra={'invitation_id': str(existing.id), 'org_id': str(org_id)},
            )
            return InvitationCreateResult(invitation=existing, duplicate=True)

        # Step 3: Seat check; pending invitations of the same tier count
        subscription = await OrgSubscriptionStore.get_subscription(org_id)
        members = await OrgMemberStore.get_org_members(org_id)
        pending = await OrgInvitationStore.get_pending_invitations(org_id)
        usage = SeatUsage.compute(
            subscription,
            [m.role for m in members] + [inv.role for inv in pending],
        )
        if not usage.has_free_seat(role):
            logger.warning(
                'Invitation rejected: seat limit reached',
                extra={'org_id': str(org_id), 'role': role},
            )
            raise SeatLimitExceededError(tier_for_role(role))

        # Step 4: Create the invitation
        result = await OrgInvitationStore.create_invitation(
            org_id=org_id,
            email=email,
            role=role,
            inviter_id=inviter.id,
        )
        if result.duplicate:
            return result

        # Step 5: Send invitation email
        invitation = result.invitation
        try:
            org = await OrgStore.get_org_by_id(org_id)
            org_name = org.name if org and org.name else 'your organization'
            inviter_name = inviter.email.split('@')[0] if inviter.email else 'A team member'

            _, link = await OrgInvitationService._issue_link(
                identity, email, build_accept_url(invitation), role=role
            )
            EmailService.send_invitation_email(
                to_email=email,
                org_name=org_name,
                inviter_name=inviter_name,
                role_name=role,
                action_link=link,
                invitation_id=str(invitation.id),
            )
        except Exception as e:
            # The invitation stays valid; the invitee can request a resend.
            logger.error(
                'Failed to send invitation email',
                extra={
                    'invitation_id': str(invitation.id),
                    'email': email,
                    'error': str(e),
                },
            )

        return result

    @staticmethod
    async def accept_invitation(
        invitation_id: UUID, user: AuthenticatedUser
    ) -> OrgInvitation:
        """Accept an organization invitation.

        Every step is safe to repeat: an interrupted client retries the
        whole flow, so a second call for the same invitation and user ends
        in the same state and also succeeds.

        This method:
        1. Looks up the invitation
        2. Verifies the user's email matches the invitation email
        3. Loads the membership, subscription and current members
        4. Computes seat usage
        5. Upgrades or inserts the membership, enforcing seats
        6. Marks the invitation as accepted

        Args:
            invitation_id: The invitation to accept
            user: The authenticated user accepting it

        Returns:
            OrgInvitation: The accepted invitation

        Raises:
            InvitationNotFoundError: If the invitation does not exist
            EmailMismatchError: If the user's email differs from the invitation's
            SeatLimitExceededError: If the role's seat tier is full
        """
        logger.info(
            'Accepting organization invitation',
            extra={'invitation_id': str(invitation_id), 'user_id': str(user.id)},
        )

        # Step 1: Get invitation
        invitation = await OrgInvitationStore.get_invitation_by_id(invitation_id)
        if not invitation:
            raise InvitationNotFoundError()

        # Step 2: Verify user email matches invitation email
        if normalize_email(user.email or '') != normalize_email(invitation.email):
            logger.warning(
                'Email mismatch during invitation acceptance',
                extra={
                    'user_id': str(user.id),
                    'user_email': user.email,
                    'invitation_email': invitation.email,
                    'invitation_id': str(invitation.id),
                },
            )
            raise EmailMismatchError()

        # Step 3: Load current state, fresh on every call. Membership and
        # usage must come from the same snapshot.
        org_id = invitation.org_id
        subscription = await OrgSubscriptionStore.get_subscription(org_id)
        members = await OrgMemberStore.get_org_members(org_id)
        existing_member = next((m for m in members if m.user_id == user.id), None)

        # Step 4: Seat usage of the other current members
        usage = SeatUsage.compute(
            subscription, [m.role for m in members if m.user_id != user.id]
        )

        # Step 5: Membership
        if existing_member:
            if invitation.role == ROLE_EDITOR and existing_member.role == ROLE_VIEWER:
                if not usage.has_free_seat(ROLE_EDITOR):
                    raise SeatLimitExceededError(tier_for_role(ROLE_EDITOR))
                await OrgMemberStore.update_member_role(org_id, user.id, ROLE_EDITOR)
        else:
            if not usage.has_free_seat(invitation.role):
                logger.warning(
                    'Invitation acceptance rejected: seat limit reached',
                    extra={'invitation_id': str(invitation.id), 'org_id': str(org_id)},
                )
                raise SeatLimitExceededError(tier_for_role(invitation.role))
            try:
                await OrgMemberStore.add_user_to_org(org_id, user.id, invitation.role)
            except DuplicateMembershipError:
                logger.info(
                    'Membership created concurrently, treating as accepted',
                    extra={'invitation_id': str(invitation.id), 'user_id': str(user.id)},
                )

        # Step 6: Mark invitation as accepted
        accepted = await OrgInvitationStore.mark_accepted(invitation.id, user.id)

        logger.info(
            'Organization invitation accepted',
            extra={
                'invitation_id': str(invitation.id),
                'user_id': str(user.id),
                'org_id': str(org_id),
                'role': invitation.role,
            },
        )

        return accepted or invitation

    @staticmethod
    async def resend_invitation(
        invitation_id: UUID, identity: IdentityService
    ) -> ResendAction:
        """Send a fresh link for a pending invitation.

        The link goes to the invitation's own email address, and the identity
        primitive is chosen from the state of that address's account.

        Raises:
            InvitationNotFoundError: If the invitation does not exist
            InvitationAlreadyAcceptedError: If it was already accepted
        """
        invitation = await OrgInvitationStore.get_invitation_by_id(invitation_id)
        if not invitation:
            raise InvitationNotFoundError()
        if invitation.is_accepted:
            raise InvitationAlreadyAcceptedError()

        action, link = await OrgInvitationService._issue_link(
            identity,
            invitation.email,
            build_accept_url(invitation),
            role=invitation.role,
        )
        EmailService.send_access_link_email(invitation.email, link, action.email_mode)

        logger.info(
            'Invitation link resent',
            extra={
                'invitation_id': str(invitation.id),
                'account_kind': action.kind.value,
                'email_mode': action.email_mode,
            },
        )
        return action

    @staticmethod
    async def resend_to_email(email: str, identity: IdentityService) -> ResendAction:
        """Send a fresh sign-in link to an address outside any invitation.

        Unknown addresses get no email, but the response is the same as for a
        password reset so the endpoint does not reveal which accounts exist.
        """
        email = normalize_email(email)
        existing_user = await identity.get_user_by_email(email)
        action = classify_account(existing_user)

        if action.kind == AccountKind.NEW_USER:
            logger.info('Resend requested for unknown email, skipping')
            return RESEND_ACTIONS[AccountKind.NO_PASSWORD]

        link = await identity.generate_link(
            action.link_type, email, build_new_password_url(email)
        )
        EmailService.send_access_link_email(email, link, action.email_mode)

        logger.info(
            'Access link resent',
            extra={'account_kind': action.kind.value, 'email_mode': action.email_mode},
        )
        return action
