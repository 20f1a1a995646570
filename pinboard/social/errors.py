"""Errors raised by the social toggle store."""


class SocialError(Exception):
    """Base class for social toggle store failures."""


class InvalidOperation(SocialError):
    """The requested toggle is not allowed (e.g. following yourself)."""


class PersistenceFailure(SocialError):
    """Reading or writing a membership set failed; nothing was changed."""
