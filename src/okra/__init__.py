"""okra - personal activity tracking.

Actions, logged activities and their notations stored per identity in
SQLite, behind a password and session-token layer.
"""

from .auth import SessionAuth
from .ledger import ActivityLedger
from .pairs import PairRelation
from .registry import LedgerRegistry
from .values import ValueStore

__version__ = "0.1.0"

__all__ = [
    "ActivityLedger",
    "LedgerRegistry",
    "PairRelation",
    "SessionAuth",
    "ValueStore",
]
