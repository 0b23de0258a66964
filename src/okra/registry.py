"""Maps an authenticated identity to that identity's ledger file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .auth import check_username
from .constants import LEDGER_SUFFIX
from .errors import InvalidUsername
from .ledger import ActivityLedger
from .timeutil import now_millis

logger = logging.getLogger(__name__)


class LedgerRegistry:
    """One isolated ledger file per identity under a data directory.

    Usernames are validated before they are turned into paths, and the
    resolved path must stay inside the data directory.
    """

    def __init__(self, data_dir: str | Path, clock: Callable[[], int] = now_millis):
        self.data_dir = Path(data_dir)
        self.clock = clock

    def path_for(self, username: str) -> Path:
        """Return the ledger path for `username`.

        Raises:
            InvalidUsername: The username cannot name a ledger file.
        """
        check_username(username)
        root = self.data_dir.resolve()
        path = (root / f"{username}{LEDGER_SUFFIX}").resolve()
        if path.parent != root:
            raise InvalidUsername(f"ledger for {username!r} escapes {root}")
        return path

    def open(self, username: str) -> ActivityLedger:
        """Open a fresh ledger for `username`; the caller closes it."""
        path = self.path_for(username)
        logger.debug(f"Opening ledger {path} for {username}")
        return ActivityLedger(path, clock=self.clock)

