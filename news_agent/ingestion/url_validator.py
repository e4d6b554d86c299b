"""
URL Validator

Decides whether a string is a fetchable http(s) address. No network access.
"""

from urllib.parse import urlparse

ALLOWED_SCHEMES = ('http', 'https')


def is_url(value) -> bool:
    """
    Check that a value is an absolute http or https URL.

    Args:
        value: Candidate string (any type is accepted)

    Returns:
        True if valid, False otherwise
    """
    if not value or not isinstance(value, str):
        return False

    # Whitespace inside an address means it is free text, not a link
    if value != value.strip() or any(ch.isspace() for ch in value):
        return False

    try:
        result = urlparse(value)
        # Accessing .port validates the port component
        result.port
    except ValueError:
        return False

    return result.scheme.lower() in ALLOWED_SCHEMES and bool(result.hostname)
