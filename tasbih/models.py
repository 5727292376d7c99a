from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, StrictInt


class CreateCounterRequest(BaseModel):
    """Body of POST /tasbih/create."""

    goal: StrictInt
    created_by: str


class ParticipantRequest(BaseModel):
    """Body of join and increment calls."""

    participant_name: str


class ResetRequest(BaseModel):
    """Body of POST /tasbih/{id}/reset.

    The asserted name is compared to the counter's creator; there is no other
    authentication.
    """

    requesting_name: str = ""


class ParticipantView(BaseModel):
    name: str
    count: int = Field(ge=0)


class CounterSnapshot(BaseModel):
    """Wire form of a counter, returned by every endpoint."""

    id: str
    goal: int
    current_count: int
    created_by: str
    participants: List[ParticipantView] = Field(default_factory=list)
    is_completed: bool = False
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def participant_count(self, name):
        for p in self.participants:
            if p.name == name:
                return p.count
        return 0

    def leaderboard(self):
        """Participants by count, highest first; ties keep join order."""
        return sorted(self.participants, key=lambda p: -p.count)

    @property
    def progress_percent(self):
        return round(self.current_count * 100 / self.goal) if self.goal else 0


class IncrementResponse(CounterSnapshot):
    """Snapshot after an increment, flagged when this call completed the goal."""

    transitioned_now: bool = False
