"""
Shared goal counter and its participant ledger.

A Counter is the authoritative record of one session: a fixed goal, a running
total and the per-name attribution of that total. The mutation methods here
do no locking of their own; stores call them inside their per-id critical
section and persist the result.
"""

import copy
import uuid
from datetime import datetime

from .errors import AlreadyCompleted, Forbidden, InvalidGoal


def new_counter_id():
    """Short join code: 8 lowercase hex characters."""
    return uuid.uuid4().hex[:8]


class Participant:
    def __init__(self, name, count=0):
        self.name = name
        self.count = count

    def to_dict(self):
        return {"name": self.name, "count": self.count}

    @classmethod
    def from_dict(cls, data):
        return cls(data["name"], count=int(data.get("count", 0)))


class IncrementOutcome:
    """Result of one increment: the post-increment snapshot and whether this
    particular call completed the counter."""

    def __init__(self, counter, transitioned_now):
        self.counter = counter
        self.transitioned_now = transitioned_now

    @property
    def current_count(self):
        return self.counter.current_count

    @property
    def is_completed(self):
        return self.counter.is_completed

    def to_dict(self):
        data = self.counter.to_dict()
        data["transitioned_now"] = self.transitioned_now
        return data


class Counter:
    """
    One goal-sharing session.

    version goes up by one on every state change and never goes down, resets
    included, so readers can order snapshots.
    """

    def __init__(self, counter_id, goal, created_by):
        if isinstance(goal, bool) or not isinstance(goal, int) or goal <= 0:
            raise InvalidGoal()
        self.id = counter_id
        self.goal = goal
        self.created_by = created_by
        self.current_count = 0
        self.is_completed = False
        self.version = 0
        self.created_at = datetime.utcnow()
        self.updated_at = self.created_at
        self.participants = {created_by: Participant(created_by)}

    def _touch(self):
        self.version += 1
        self.updated_at = datetime.utcnow()

    def add_participant(self, name):
        """Register name with a zero count. Returns False if it was already there."""
        if name in self.participants:
            return False
        self.participants[name] = Participant(name)
        self._touch()
        return True

    def increment(self, name):
        """Attribute one increment to name, registering it first if needed.

        Returns True when this increment is the one that reached the goal.
        """
        if self.is_completed:
            raise AlreadyCompleted()

        self.participants.setdefault(name, Participant(name))
        self.participants[name].count += 1
        self.current_count += 1

        transitioned = False
        if self.current_count >= self.goal:
            self.is_completed = True
            transitioned = True

        self._touch()
        return transitioned

    def reset(self, requesting_name):
        if requesting_name != self.created_by:
            raise Forbidden()
        for participant in self.participants.values():
            participant.count = 0
        self.current_count = 0
        self.is_completed = False
        self._touch()

    def attributed_total(self):
        return sum(p.count for p in self.participants.values())

    def copy(self):
        return copy.deepcopy(self)

    def to_dict(self):
        return {
            "id": self.id,
            "goal": self.goal,
            "current_count": self.current_count,
            "created_by": self.created_by,
            "participants": [p.to_dict() for p in self.participants.values()],
            "is_completed": self.is_completed,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        c = cls(data["id"], int(data["goal"]), data["created_by"])
        c.participants = {}
        for raw in data.get("participants", []):
            participant = Participant.from_dict(raw)
            c.participants[participant.name] = participant
        c.current_count = int(data.get("current_count", 0))
        c.is_completed = bool(data.get("is_completed", False))
        c.version = int(data.get("version", 0))
        if data.get("created_at"):
            c.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            c.updated_at = datetime.fromisoformat(data["updated_at"])
        return c
