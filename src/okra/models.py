"""Value objects returned by the stores and the ledger.

Uses Pydantic v2 so results serialize directly for the HTTP layer.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class InternedValue(BaseModel):
    """A row of a ValueStore: a unique text and its stable id."""

    id: int = Field(gt=0)
    text: str


class PairRow(BaseModel):
    """A row of a PairRelation.

    `id` is the surrogate row id and records insertion order.
    """

    id: int = Field(gt=0)
    key: int
    value: int | str


class Action(BaseModel):
    id: int = Field(gt=0)
    name: str


class Note(BaseModel):
    id: int = Field(gt=0)
    text: str


class Activity(BaseModel):
    """One logged occurrence of an action."""

    id: int = Field(gt=0)
    time: int  # epoch milliseconds
    action_id: int

    @property
    def logged_at(self) -> datetime:
        return datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)


class LoginInfo(BaseModel):
    username: str
    password: str


class SessionToken(BaseModel):
    """Decoded contents of a session token."""

    expiry_millis: int = Field(ge=0)
    username: str

    def payload(self) -> str:
        """The signed part of the wire format."""
        return f"{self.expiry_millis} {self.username}"
