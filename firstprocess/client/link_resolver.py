"""
Classification of incoming authentication links.

Emailed links reach the landing page carrying one of several artifact shapes,
depending on which identity flow produced them. ``classify_incoming_url`` is a
pure function naming the shape; ``LinkResolver`` turns it into a single
terminal outcome (navigate to the session bridge, proceed, need a session,
conflict or error). Only ``apply_outcome`` touches the browser location.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.identity import (
    IdentityService,
    IdentityServiceError,
    IdentitySession,
)
from firstprocess.server.constants import OTP_TYPES, SESSION_BRIDGE_PATH

# Keys the identity provider places in the fragment after an implicit flow.
FRAGMENT_TOKEN_KEYS = (
    'access_token',
    'refresh_token',
    'expires_in',
    'expires_at',
    'token_type',
    'type',
    'provider_token',
)

# Parameters that belong to authentication, never to the page itself.
AUTH_PARAMS = frozenset(
    [
        *FRAGMENT_TOKEN_KEYS,
        'code',
        'token',
        'token_hash',
        'error',
        'error_code',
        'error_description',
        'auth_error',
    ]
)

EXPECTED_EMAIL_PARAM = 'em'


class ArtifactKind(str, Enum):
    FRAGMENT_TOKENS = 'fragment-tokens'
    CODE = 'code'
    TOKEN_PAIR = 'token-pair'
    OTP = 'otp'
    NONE = 'none'


class ResolverState(str, Enum):
    NAVIGATE = 'navigate'
    PROCEED = 'proceed'
    NEED_SESSION = 'need-session'
    CONFLICT = 'conflict'
    ERROR = 'error'


@dataclass(frozen=True)
class ResolverOutcome:
    state: ResolverState
    # Where to go next for NAVIGATE; the token-free page URL otherwise.
    location: Optional[str] = None
    reason: Optional[str] = None
    offer_resend: bool = False
    session: Optional[IdentitySession] = field(default=None, compare=False)


def _query(parts) -> dict[str, str]:
    return dict(parse_qsl(parts.query, keep_blank_values=True))


def _fragment(parts) -> dict[str, str]:
    return dict(parse_qsl(parts.fragment, keep_blank_values=True))


def classify_incoming_url(url: str) -> ArtifactKind:
    """Name the authentication artifact carried by ``url``.

    Shapes are checked in a fixed priority: fragment tokens, then a PKCE code
    or token pair in the query, then an OTP token with a known type.
    """
    parts = urlsplit(url)
    fragment = _fragment(parts)
    if fragment.get('access_token'):
        return ArtifactKind.FRAGMENT_TOKENS

    query = _query(parts)
    if query.get('code'):
        return ArtifactKind.CODE
    if query.get('access_token') and query.get('refresh_token'):
        return ArtifactKind.TOKEN_PAIR
    if (query.get('token_hash') or query.get('token')) and query.get(
        'type'
    ) in OTP_TYPES:
        return ArtifactKind.OTP
    return ArtifactKind.NONE


def scrub_url(url: str) -> str:
    """The page's own path and business parameters, with auth data removed."""
    parts = urlsplit(url)
    kept = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in AUTH_PARAMS
    ]
    return urlunsplit(('', '', parts.path or '/', urlencode(kept), ''))


def build_session_bridge_url(url: str, credentials: dict[str, str]) -> str:
    """Session bridge URL forwarding ``credentials`` and a ``next`` back to the page."""
    params = {key: value for key, value in credentials.items() if value}
    params['next'] = scrub_url(url)
    return f'{SESSION_BRIDGE_PATH}?{urlencode(params)}'


def bridge_url_for(url: str) -> Optional[str]:
    """Bridge URL for links whose artifact the server can exchange directly."""
    kind = classify_incoming_url(url)
    parts = urlsplit(url)
    if kind == ArtifactKind.FRAGMENT_TOKENS:
        fragment = _fragment(parts)
        return build_session_bridge_url(
            url, {key: fragment.get(key, '') for key in FRAGMENT_TOKEN_KEYS}
        )
    query = _query(parts)
    if kind == ArtifactKind.CODE:
        return build_session_bridge_url(url, {'code': query['code']})
    if kind == ArtifactKind.TOKEN_PAIR:
        return build_session_bridge_url(
            url,
            {
                'access_token': query['access_token'],
                'refresh_token': query['refresh_token'],
            },
        )
    return None


def _link_error(url: str) -> Optional[str]:
    parts = urlsplit(url)
    for params in (_fragment(parts), _query(parts)):
        reason = (
            params.get('error_description')
            or params.get('auth_error')
            or params.get('error')
        )
        if reason:
            return reason
    return None


class LinkResolver:
    """Decides what the landing page does with the URL it was opened on."""

    def __init__(self, identity: IdentityService):
        self.identity = identity

    def _check_email(
        self, url: str, session: IdentitySession, scrubbed: str
    ) -> Optional[ResolverOutcome]:
        expected = _query(urlsplit(url)).get(EXPECTED_EMAIL_PARAM)
        if not expected:
            return None
        if session.user.normalized_email == expected.strip().lower():
            return None
        logger.info('Signed-in account does not match link email')
        return ResolverOutcome(
            state=ResolverState.CONFLICT,
            location=scrubbed,
            reason=(
                'You are signed in with a different account. '
                'Sign out, then open the link again.'
            ),
            session=session,
        )

    async def resolve(
        self, url: str, session: Optional[IdentitySession] = None
    ) -> ResolverOutcome:
        """Resolve ``url`` to a terminal outcome.

        Args:
            url: The full URL the page was opened on, fragment included
            session: The session the client already holds, if any

        Returns:
            ResolverOutcome: Never raises; failures become NEED_SESSION or ERROR
        """
        scrubbed = scrub_url(url)
        kind = classify_incoming_url(url)

        bridge_url = bridge_url_for(url)
        if bridge_url:
            return ResolverOutcome(state=ResolverState.NAVIGATE, location=bridge_url)

        if kind == ArtifactKind.OTP:
            query = _query(urlsplit(url))
            token = query.get('token_hash') or query.get('token')
            try:
                verified = await self.identity.verify_otp(token, query['type'])
            except IdentityServiceError as e:
                logger.info(
                    'One-time token verification failed',
                    extra={'status_code': e.status_code},
                )
                if e.is_rejection:
                    return ResolverOutcome(
                        state=ResolverState.NEED_SESSION,
                        location=scrubbed,
                        reason='This link has expired or was already used.',
                        offer_resend=True,
                    )
                return ResolverOutcome(
                    state=ResolverState.ERROR,
                    location=scrubbed,
                    reason='Could not reach the sign-in service. Please retry.',
                )
            conflict = self._check_email(url, verified, scrubbed)
            if conflict:
                return conflict
            # Client-held sessions are invisible to the server until bridged.
            return ResolverOutcome(
                state=ResolverState.NAVIGATE,
                location=build_session_bridge_url(
                    url,
                    {
                        'access_token': verified.access_token,
                        'refresh_token': verified.refresh_token,
                    },
                ),
                session=verified,
            )

        if session is not None:
            conflict = self._check_email(url, session, scrubbed)
            if conflict:
                return conflict
            return ResolverOutcome(
                state=ResolverState.PROCEED, location=scrubbed, session=session
            )

        return ResolverOutcome(
            state=ResolverState.NEED_SESSION,
            location=scrubbed,
            reason=_link_error(url) or 'No active session. Request a new link.',
            offer_resend=True,
        )


def apply_outcome(
    current_url: str,
    outcome: ResolverOutcome,
    replace_location: Callable[[str], None],
) -> bool:
    """Move the browser according to ``outcome``.

    Navigations replace the current history entry, and any other outcome
    rewrites the address to its token-free form, so a refresh never
    re-submits a consumed artifact.

    Returns:
        bool: True if the location was changed
    """
    target = outcome.location
    if not target:
        return False
    parts = urlsplit(current_url)
    current = urlunsplit(('', '', parts.path or '/', parts.query, parts.fragment))
    if target == current:
        return False
    replace_location(target)
    return True
