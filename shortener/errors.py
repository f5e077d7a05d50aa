"""Exception hierarchy raised by the shortener core.

Every failure the core can report carries an :class:`~shortener.enums.ErrorKind`.
The HTTP layer maps kinds to status codes in one place (``routes.ERROR_STATUS``),
so nothing downstream needs to inspect exception messages.
"""

from shortener.enums import ErrorKind

__all__ = [
    "ShortenerError",
    "InvalidUrl",
    "InvalidValidity",
    "InvalidAliasFormat",
    "AliasAlreadyExists",
    "AliasNotFound",
    "AliasExpired",
    "AliasInactive",
    "StoreUnavailable",
]


class ShortenerError(Exception):
    kind: ErrorKind
    default_message: str = "Shortener operation failed"

    def __init__(self, message: str | None = None, alias_text: str | None = None) -> None:
        self.message = message or self.default_message
        self.alias_text = alias_text
        super().__init__(self.message)


class InvalidUrl(ShortenerError):
    kind = ErrorKind.INVALID_URL
    default_message = "Invalid URL format"


class InvalidValidity(ShortenerError):
    kind = ErrorKind.INVALID_VALIDITY
    default_message = "Validity must be a positive integer representing minutes"


class InvalidAliasFormat(ShortenerError):
    kind = ErrorKind.INVALID_ALIAS_FORMAT
    default_message = "Invalid shortcode format. Only alphanumeric characters allowed."


class AliasAlreadyExists(ShortenerError):
    kind = ErrorKind.ALIAS_ALREADY_EXISTS
    default_message = "Shortcode already exists"


class AliasNotFound(ShortenerError):
    kind = ErrorKind.ALIAS_NOT_FOUND
    default_message = "Short URL not found"


class AliasExpired(ShortenerError):
    kind = ErrorKind.ALIAS_EXPIRED
    default_message = "Short URL has expired"


class AliasInactive(ShortenerError):
    kind = ErrorKind.ALIAS_INACTIVE
    default_message = "Short URL is no longer active"


class StoreUnavailable(ShortenerError):
    kind = ErrorKind.STORE_UNAVAILABLE
    default_message = "Alias store is unavailable"
