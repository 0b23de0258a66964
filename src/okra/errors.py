"""Failure kinds raised by the stores and the session layer."""


class OkraError(Exception):
    """Base class for every failure okra reports to its callers."""


# --- Storage ---


class StoreError(OkraError):
    """Failure raised by a ValueStore or PairRelation."""


class NotFound(StoreError):
    """The requested identity does not exist."""

    def __init__(self, what: str, ident: object):
        super().__init__(f"{what} not found: {ident}")
        self.what = what
        self.ident = ident


class DuplicateKey(StoreError):
    """A unique column already holds the value."""


class StorageUnavailable(StoreError):
    """The backing store could not be opened or queried."""


# --- Sessions ---


class AuthError(OkraError):
    """Failure raised by SessionAuth."""


class DuplicateUser(AuthError):
    pass


class UnknownUser(AuthError):
    pass


class InvalidCredentials(AuthError):
    pass


class InvalidUsername(AuthError):
    """The username cannot be used as an identity (and ledger file name)."""


class Malformed(AuthError):
    """The session token does not follow the token grammar."""


class InvalidSignature(Malformed):
    """The session token signature is missing or does not match."""


class Expired(AuthError):
    """The session token is past its expiry."""
