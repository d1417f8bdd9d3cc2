"""Shared constants for the First Process server."""

ROLE_OWNER = 'owner'
ROLE_EDITOR = 'editor'
ROLE_VIEWER = 'viewer'

ALL_ROLES = (ROLE_OWNER, ROLE_EDITOR, ROLE_VIEWER)
# Roles an invitation may carry; owners are promoted explicitly.
INVITABLE_ROLES = (ROLE_EDITOR, ROLE_VIEWER)

# Seat tiers: owners and editors share the editor tier.
TIER_EDITOR = 'editor'
TIER_VIEWER = 'viewer'

# Subscription statuses for which seat limits are enforced.
ACTIVE_SUBSCRIPTION_STATUSES = frozenset(['active', 'trialing', 'paused'])

# OTP link types accepted by the identity provider's verify endpoint.
OTP_TYPES = frozenset(['invite', 'signup', 'recovery', 'magiclink', 'email_change'])

ACCESS_TOKEN_COOKIE = 'fp-access-token'
REFRESH_TOKEN_COOKIE = 'fp-refresh-token'
CODE_VERIFIER_COOKIE = 'fp-code-verifier'
REFRESH_TOKEN_MAX_AGE = 60 * 60 * 24 * 30
DEFAULT_ACCESS_TOKEN_MAX_AGE = 60 * 60

PASSWORD_MIN_LENGTH = 8

ORG_HOME_PATH = '/org'
ACCEPT_INVITE_PATH = '/accept-invite'
SESSION_BRIDGE_PATH = '/auth/callback'
NEW_PASSWORD_PATH = '/auth/new-password'

# Client-side pacing.
RESEND_MIN_INTERVAL_SECONDS = 60
SESSION_POLL_MAX_ATTEMPTS = 20
SESSION_POLL_DELAY_SECONDS = 0.5
