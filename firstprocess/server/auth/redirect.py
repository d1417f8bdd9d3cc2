"""Continuation-path handling for auth redirects."""

from urllib.parse import unquote, urlsplit

DEFAULT_NEXT_PATH = '/'

# Query values arrive decoded once by the framework; allow one more level for
# links that were encoded twice on their way through an email provider.
MAX_DECODE_PASSES = 2


def sanitize_next(value: str | None, default: str = DEFAULT_NEXT_PATH) -> str:
    """Coerce a caller-supplied ``next`` value into a same-origin path.

    Anything that could leave the site (absolute URLs, protocol-relative
    ``//host`` paths, backslash tricks, control characters) falls back to
    ``default``.

    Examples:
        >>> sanitize_next('/org')
        '/org'
        >>> sanitize_next('%252Fdashboard')
        '/dashboard'
        >>> sanitize_next('https://evil.example/')
        '/'
    """
    if not value:
        return default

    candidate = value.strip()
    for _ in range(MAX_DECODE_PASSES):
        if candidate.startswith('/'):
            break
        decoded = unquote(candidate)
        if decoded == candidate:
            break
        candidate = decoded

    if not candidate.startswith('/'):
        return default
    if candidate.startswith('//') or '\\' in candidate:
        return default
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in candidate):
        return default

    parts = urlsplit(candidate)
    if parts.scheme or parts.netloc:
        return default
    return candidate


def append_query_flag(url: str, key: str, value: str) -> str:
    separator = '&' if '?' in url else '?'
    return f'{url}{separator}{key}={value}'
