"""Activity ledger - actions, logged activities and their notations.

Composes two ValueStores and three PairRelations living in one SQLite file:

- actions: interned action names
- notes: interned notation text
- actionHierarchy: parent action -> child action
- activities: time -> action; the row id is the ActivityId
- notations: activity id -> note id
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from .constants import (
    ACTION_COLUMN,
    ACTION_HIERARCHY_TABLE,
    ACTION_TABLE,
    ACTIVITY_TABLE,
    CHILD_COLUMN,
    DEFAULT_PAGE_SIZE,
    NOTATIONS_TABLE,
    NOTE_COLUMN,
    NOTE_TABLE,
    PARENT_COLUMN,
    TIME_COLUMN,
)
from .errors import NotFound
from .models import Action, Activity, Note, PairRow
from .pairs import PairRelation
from .storage import connect, storage_errors, transaction
from .timeutil import now_millis
from .values import ValueStore

logger = logging.getLogger(__name__)

ActionId = int
ActivityId = int
NoteId = int


def _activity(row: PairRow) -> Activity:
    return Activity(id=row.id, time=row.key, action_id=row.value)


class ActivityLedger:
    """Domain operations over one identity's ledger file.

    One instance per request or command: the ledger owns its connection
    and is not shared between threads.
    """

    def __init__(self, path: str | Path, clock: Callable[[], int] = now_millis):
        """Open (or create) the ledger stored at `path`.

        Args:
            path: Ledger file, or ":memory:"
            clock: Returns the current time in epoch milliseconds
        """
        self.path = path
        self.clock = clock
        self.conn = connect(path)
        self.actions = ValueStore(self.conn, ACTION_TABLE, ACTION_COLUMN)
        self.notes = ValueStore(self.conn, NOTE_TABLE, NOTE_COLUMN)
        self.action_hierarchy = PairRelation(
            self.conn, ACTION_HIERARCHY_TABLE, PARENT_COLUMN, CHILD_COLUMN
        )
        self.activities = PairRelation(self.conn, ACTIVITY_TABLE, TIME_COLUMN, ACTION_COLUMN)
        self.notations = PairRelation(self.conn, NOTATIONS_TABLE, TIME_COLUMN, NOTE_COLUMN)

    def close(self) -> None:
        with storage_errors(f"close {self.path}"):
            self.conn.close()

    def __enter__(self) -> "ActivityLedger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require_action(self, action: ActionId) -> None:
        if not self.actions.exists(action):
            raise NotFound(ACTION_TABLE, action)

    # --- Actions ---

    def create_action(self, action_name: str) -> ActionId:
        """Intern an action name; an existing name returns its id."""
        action = self.actions.create(action_name)
        logger.debug(f"create_action {action_name!r} -> {action}")
        return action

    def make_action_parent_of(self, parent: ActionId, child: ActionId) -> None:
        """Record `child` under `parent`. Cycles are not checked."""
        self._require_action(parent)
        self._require_action(child)
        self.action_hierarchy.insert(parent, child)

    def get_action_name(self, action: ActionId) -> str:
        return self.actions.get(action)

    def get_action_children(
        self,
        parent: ActionId,
        last_child: ActionId = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[ActionId]:
        return self.action_hierarchy.get_page(parent, last_child, limit)

    def get_action_parents(self, child: ActionId, limit: int = DEFAULT_PAGE_SIZE) -> list[ActionId]:
        return self.action_hierarchy.keys_for(child, limit)

    def search_action_names(
        self,
        substring: str,
        last_action: ActionId = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[Action]:
        return [
            Action(id=value.id, name=value.text)
            for value in self.actions.search_page(substring, last_action, limit)
        ]

    # --- Activities ---

    def log_activity(self, action: ActionId) -> ActivityId:
        """Log `action` as happening now."""
        return self.log_activity_at_time(action, self.clock())

    def log_activity_at_time(self, action: ActionId, epoch_millis: int) -> ActivityId:
        self._require_action(action)
        activity = self.activities.insert(epoch_millis, action)
        logger.debug(f"log_activity action={action} time={epoch_millis} -> {activity}")
        return activity

    def log_activities(self, actions: Iterable[ActionId]) -> list[ActivityId]:
        """Log several actions under one shared timestamp.

        All rows are written in a single transaction; an unknown action
        aborts the whole batch.

        Returns:
            One ActivityId per action, in input order.
        """
        actions = list(actions)
        for action in actions:
            self._require_action(action)

        time_millis = self.clock()
        with transaction(self.conn):
            activities = [
                self.activities.insert(time_millis, action, commit=False)
                for action in actions
            ]
        logger.debug(f"log_activities {len(activities)} actions at {time_millis}")
        return activities

    def get_activity(self, activity: ActivityId) -> Activity:
        return _activity(self.activities.get(activity))

    def search_activity_by_time(
        self,
        from_millis: int,
        to_millis: int,
        limit: int = DEFAULT_PAGE_SIZE,
        after: Activity | None = None,
    ) -> list[Activity]:
        """Activities with from_millis <= time < to_millis, oldest first.

        Pass the last Activity of a page as `after` to continue.
        """
        cursor = (after.time, after.id) if after is not None else None
        return [
            _activity(row)
            for row in self.activities.page_left(from_millis, to_millis, limit, cursor)
        ]

    # --- Notations ---

    def annotate_activity(self, activity: ActivityId, text: str) -> NoteId:
        """Attach `text` to an activity and return the note id."""
        self.activities.get(activity)
        with transaction(self.conn):
            note = self.notes.create(text, commit=False)
            self.notations.insert(activity, note, commit=False)
        return note

    def get_notations(
        self,
        activity: ActivityId,
        last_note: NoteId = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[NoteId]:
        return self.notations.get_page(activity, last_note, limit)

    def get_note(self, note: NoteId) -> str:
        return self.notes.get(note)

    def get_note_bulk(self, notes: Iterable[NoteId]) -> list[Note]:
        return [Note(id=value.id, text=value.text) for value in self.notes.get_bulk(notes)]
