"""Email service for sending transactional emails via Resend."""

import html
import os

import resend

from firstprocess.core.logger import firstprocess_logger as logger

DEFAULT_FROM_EMAIL = 'First Process <no-reply@first-process.app>'

EMAIL_MODE_INVITE = 'invite'
EMAIL_MODE_PASSWORD_RESET = 'password-reset'
EMAIL_MODE_MAGIC_LINK = 'magic-link'

_SUBJECTS = {
    EMAIL_MODE_INVITE: 'Your invitation to First Process',
    EMAIL_MODE_PASSWORD_RESET: 'Set your First Process password',
    EMAIL_MODE_MAGIC_LINK: 'Your First Process sign-in link',
}

_INTROS = {
    EMAIL_MODE_INVITE: 'Here is a fresh link to join your organization and set your password.',
    EMAIL_MODE_PASSWORD_RESET: 'Use the link below to set a password for your account.',
    EMAIL_MODE_MAGIC_LINK: 'Use the link below to sign in.',
}


def _button(url: str, label: str) -> str:
    url = html.escape(url)
    return f"""
                <p style="margin: 30px 0;">
                    <a href="{url}"
                       style="background-color: #2f6feb; color: #ffffff; padding: 8px 16px;
                              text-decoration: none; border-radius: 8px; display: inline-block;
                              font-size: 14px; font-weight: 600;">
                        {label}
                    </a>
                </p>

                <p style="color: #666; font-size: 14px;">
                    Or copy and paste this link into your browser:<br>
                    <a href="{url}" style="color: #2f6feb; font-weight: 600;">{url}</a>
                </p>
    """


class EmailService:
    """Service for sending transactional emails."""

    @staticmethod
    def _get_resend_client() -> bool:
        """Configure the Resend client.

        Returns:
            bool: True if client is ready, False otherwise
        """
        resend_api_key = os.environ.get('RESEND_API_KEY')
        if not resend_api_key:
            logger.warning('RESEND_API_KEY not configured, skipping email')
            return False

        resend.api_key = resend_api_key
        return True

    @staticmethod
    def _send(params: dict, log_extra: dict) -> None:
        try:
            response = resend.Emails.send(params)
            logger.info(
                'Email sent',
                extra={
                    **log_extra,
                    'response_id': response.get('id') if response else None,
                },
            )
        except Exception as e:
            logger.error(
                'Failed to send email',
                extra={**log_extra, 'error': str(e)},
            )
            raise

    @staticmethod
    def send_invitation_email(
        to_email: str,
        org_name: str,
        inviter_name: str,
        role_name: str,
        action_link: str,
        invitation_id: str,
    ) -> None:
        """Send an organization invitation email.

        Args:
            to_email: Recipient's email address
            org_name: Name of the organization
            inviter_name: Display name of the person who sent the invite
            role_name: Role being offered ('editor' or 'viewer')
            action_link: Identity provider link that signs the invitee in
            invitation_id: The invitation ID for logging
        """
        if not EmailService._get_resend_client():
            return

        from_email = os.environ.get('RESEND_FROM_EMAIL', DEFAULT_FROM_EMAIL)

        params = {
            'from': from_email,
            'to': [to_email],
            'subject': f"You're invited to join {org_name} on First Process",
            'html': f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <p>Hi,</p>

                <p><strong>{html.escape(inviter_name)}</strong> has invited you to join <strong>{html.escape(org_name)}</strong> on First Process as a <strong>{html.escape(role_name)}</strong>.</p>

                <p>Click the button below to accept the invitation and set your password:</p>
                {_button(action_link, 'Accept Invitation')}
                <p style="color: #666; font-size: 14px;">
                    If the link has expired, open it anyway and ask for a new one.
                </p>

                <p style="color: #666; font-size: 14px;">
                    If you weren't expecting this invitation, you can safely ignore this email.
                </p>
            </div>
            """,
        }

        EmailService._send(
            params,
            {'invitation_id': invitation_id, 'email': to_email, 'mode': EMAIL_MODE_INVITE},
        )

    @staticmethod
    def send_access_link_email(to_email: str, action_link: str, mode: str) -> None:
        """Send a replacement sign-in link.

        Args:
            to_email: Recipient's email address
            action_link: Identity provider link
            mode: One of the EMAIL_MODE_* values; selects the wording
        """
        if not EmailService._get_resend_client():
            return

        from_email = os.environ.get('RESEND_FROM_EMAIL', DEFAULT_FROM_EMAIL)

        params = {
            'from': from_email,
            'to': [to_email],
            'subject': _SUBJECTS[mode],
            'html': f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <p>Hi,</p>

                <p>{_INTROS[mode]}</p>
                {_button(action_link, 'Continue')}
                <p style="color: #666; font-size: 14px;">
                    If you didn't ask for this email, you can safely ignore it.
                </p>
            </div>
            """,
        }

        EmailService._send(params, {'email': to_email, 'mode': mode})
