"""Password enrollment, login, and self-contained session tokens.

Token wire format: "<expiryEpochMillis> <username>", or, when a secret key
is configured, "<expiryEpochMillis> <username> <signature>" where the
itsdangerous signature (HMAC-SHA256, url-safe base64) covers the first two
fields. No session table is kept: expiry is the only way a token stops
working.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Callable

from itsdangerous import BadSignature, Signer
from werkzeug.security import check_password_hash, generate_password_hash

from .constants import (
    DEFAULT_SESSION_LIFETIME_SECONDS,
    EXPIRY_LIMIT,
    MAX_EXPIRY_DIGITS,
    SECRET_COLUMN,
    TOKEN_SALT,
    USERNAME_COLUMN,
    USERNAME_PATTERN,
    USERS_TABLE,
)
from .errors import (
    DuplicateKey,
    DuplicateUser,
    Expired,
    InvalidCredentials,
    InvalidSignature,
    InvalidUsername,
    Malformed,
    UnknownUser,
)
from .models import LoginInfo, SessionToken
from .storage import connect, storage_errors
from .timeutil import now_millis

logger = logging.getLogger(__name__)

_USERNAME = re.compile(USERNAME_PATTERN)
_EXPIRY = re.compile(rf"[0-9]{{1,{MAX_EXPIRY_DIGITS}}}")


def check_username(username: str) -> str:
    """Return `username` if it is usable as an identity, else raise InvalidUsername."""
    if not _USERNAME.fullmatch(username):
        raise InvalidUsername(f"invalid username: {username!r}")
    return username


def token_signer(secret_key: str) -> Signer:
    return Signer(secret_key, salt=TOKEN_SALT, sep=" ", digest_method=hashlib.sha256)


def sign(payload: str, secret_key: str) -> str:
    """Return the signature field for `payload`."""
    return token_signer(secret_key).get_signature(payload).decode("ascii")


def encode_token(token: SessionToken, secret_key: str | None = None) -> str:
    """Serialize a token, appending a signature when `secret_key` is set."""
    payload = token.payload()
    if secret_key is None:
        return payload
    return token_signer(secret_key).sign(payload).decode("utf-8")


def decode_token(raw: str, secret_key: str | None = None) -> SessionToken:
    """Parse a token string without checking expiry.

    Raises:
        Malformed: Wrong number of fields, or an expiry that is not an
            unsigned 128-bit integer.
        InvalidSignature: Signature missing or wrong (signed mode only).
    """
    fields = raw.split(" ")
    expected = 2 if secret_key is None else 3
    if len(fields) != expected:
        if secret_key is not None and len(fields) == 2:
            raise InvalidSignature("unsigned session token")
        raise Malformed("invalid session token")

    expiry, username = fields[0], fields[1]
    if not _EXPIRY.fullmatch(expiry) or not username:
        raise Malformed("invalid session token")
    expiry_millis = int(expiry)
    if expiry_millis >= EXPIRY_LIMIT:
        raise Malformed("session token expiry out of range")

    if secret_key is not None:
        try:
            token_signer(secret_key).unsign(raw)
        except BadSignature as e:
            raise InvalidSignature("session token signature mismatch") from e
    return SessionToken(expiry_millis=expiry_millis, username=username)


class SessionAuth:
    """Identity table plus the session-token scheme.

    The identity table holds (username, salted password hash) rows and is
    separate from every ledger file.
    """

    def __init__(
        self,
        path: str | Path,
        session_lifetime_seconds: int = DEFAULT_SESSION_LIFETIME_SECONDS,
        secret_key: str | None = None,
        clock: Callable[[], int] = now_millis,
    ):
        """Open (or create) the identity table stored at `path`.

        Args:
            path: Identity database file, or ":memory:"
            session_lifetime_seconds: Lifetime of tokens minted by login()
            secret_key: If set, tokens are HMAC-signed and must verify
            clock: Returns the current time in epoch milliseconds
        """
        if session_lifetime_seconds <= 0:
            raise ValueError("session_lifetime_seconds must be positive")
        self.path = path
        self.session_lifetime_millis = session_lifetime_seconds * 1000
        self.secret_key = secret_key
        self.clock = clock
        self.conn = connect(path)
        self._init_table()

    def _init_table(self) -> None:
        with storage_errors(f"create table {USERS_TABLE}"):
            self.conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
                    {USERNAME_COLUMN} TEXT UNIQUE,
                    {SECRET_COLUMN} TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_username ON {USERS_TABLE} ({USERNAME_COLUMN});
            """)

    def close(self) -> None:
        with storage_errors(f"close {self.path}"):
            self.conn.close()

    def __enter__(self) -> "SessionAuth":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _stored_secret(self, username: str) -> str:
        with storage_errors(f"lookup user {username}"):
            row = self.conn.execute(
                f"SELECT {SECRET_COLUMN} FROM {USERS_TABLE} WHERE {USERNAME_COLUMN} = ?",
                (username,),
            ).fetchone()
        if row is None:
            raise UnknownUser(f"no user: {username}")
        return row[0]

    def enroll(self, username: str, password: str) -> None:
        """Create an identity with a salted hash of `password`.

        Raises:
            InvalidUsername: The username is not a safe identity string.
            InvalidCredentials: The password is empty.
            DuplicateUser: The username is taken.
        """
        check_username(username)
        if not password:
            raise InvalidCredentials("password must not be empty")

        hashed = generate_password_hash(password)
        try:
            with storage_errors(f"add user {username}"):
                self.conn.execute(
                    f"INSERT INTO {USERS_TABLE} ({USERNAME_COLUMN}, {SECRET_COLUMN}) VALUES (?, ?)",
                    (username, hashed),
                )
                self.conn.commit()
        except DuplicateKey:
            raise DuplicateUser(f"user already exists: {username}") from None
        logger.info(f"Enrolled user {username}")

    def remove_user(self, username: str) -> None:
        """Delete an identity (administrative path).

        Raises:
            UnknownUser: No such user.
        """
        with storage_errors(f"remove user {username}"):
            cursor = self.conn.execute(
                f"DELETE FROM {USERS_TABLE} WHERE {USERNAME_COLUMN} = ?",
                (username,),
            )
            self.conn.commit()
        if cursor.rowcount == 0:
            raise UnknownUser(f"no user: {username}")
        logger.info(f"Removed user {username}")

    def has_user(self, username: str) -> bool:
        try:
            self._stored_secret(username)
        except UnknownUser:
            return False
        return True

    def mint(self, username: str) -> str:
        """Build a token for `username` valid for the session lifetime."""
        token = SessionToken(
            expiry_millis=self.clock() + self.session_lifetime_millis,
            username=username,
        )
        return encode_token(token, self.secret_key)

    def login(self, username: str, password: str) -> str:
        """Check a username/password pair and return a session token.

        Raises:
            UnknownUser: No such user.
            InvalidCredentials: The password does not match.
        """
        stored_secret = self._stored_secret(username)
        if not check_password_hash(stored_secret, password):
            logger.warning(f"Invalid password for user {username}")
            raise InvalidCredentials("invalid password")
        logger.info(f"User {username} logged in")
        return self.mint(username)

    def login_info(self, login: LoginInfo) -> str:
        return self.login(login.username, login.password)

    def validate(self, raw_token: str) -> str:
        """Return the username carried by a live token.

        Raises:
            Malformed: The token does not parse (InvalidSignature when the
                signature is missing or wrong).
            Expired: The token's expiry has passed.
        """
        token = decode_token(raw_token, self.secret_key)
        if self.clock() >= token.expiry_millis:
            raise Expired(f"session for {token.username} expired")
        return token.username
