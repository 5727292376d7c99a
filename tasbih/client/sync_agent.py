"""
Client-side view of one shared counter.

The service is the only authority and there is no push channel, so the agent
pulls a snapshot every poll interval and reconciles it against the last one
it accepted:

  - snapshots older than the accepted one (lower version) are dropped, so
    out-of-order responses never move the display backwards;
  - an accepted snapshot replaces the local view wholesale;
  - events for the presentation layer are derived from the difference
    between the previous and the new snapshot. Completion fires on the
    false -> true edge of is_completed, never on the level.
"""

import asyncio
from enum import Enum
from typing import List

import structlog
from pydantic import BaseModel

from ..errors import AlreadyCompleted, CounterError, Forbidden, NotFound, Transient
from ..models import CounterSnapshot, ParticipantView

log = structlog.get_logger()


class AgentState(str, Enum):
    UNIDENTIFIED = "unidentified"
    JOINING = "joining"
    ACTIVE = "active"
    CLOSED = "closed"


class ProgressUpdate(BaseModel):
    counter_id: str
    current_count: int
    goal: int
    percent: int
    my_count: int
    participants: List[ParticipantView]
    is_completed: bool
    is_creator: bool
    version: int


class SyncListener:
    """Presentation hooks. Subclass and override what you need."""

    def on_progress(self, update):
        pass

    def on_completed(self, snapshot):
        pass

    def on_tap_ack(self, vibrate):
        """Cosmetic feedback for a tap, fired before the request is sent."""
        pass

    def on_notice(self, code, message):
        """Informational, not a failure: ALREADY_COMPLETED, RESET, RECOVERED."""
        pass

    def on_error(self, error):
        pass

    def on_terminated(self, reason):
        pass


class ClientSyncAgent:
    def __init__(
        self,
        transport,
        counter_id,
        profile,
        listener=None,
        poll_interval=2.0,
        transient_error_threshold=5,
        not_found_limit=2,
    ):
        self.transport = transport
        self.counter_id = counter_id
        self.profile = profile
        self.listener = listener or SyncListener()
        self.poll_interval = poll_interval
        self.transient_error_threshold = max(int(transient_error_threshold), 1)
        self.not_found_limit = max(int(not_found_limit), 1)

        self.state = AgentState.JOINING if profile.is_identified else AgentState.UNIDENTIFIED
        self.snapshot = None
        self._stop_event = asyncio.Event()
        self._consecutive_transient = 0
        self._consecutive_not_found = 0
        self.stats = {
            "polls": 0,
            "snapshots_accepted": 0,
            "stale_skips": 0,
            "transient_failures": 0,
            "completions_fired": 0,
        }

    @classmethod
    def from_config(cls, config, transport, counter_id, profile, listener=None):
        return cls(
            transport,
            counter_id,
            profile,
            listener=listener,
            poll_interval=config.poll_interval,
            transient_error_threshold=config.transient_error_threshold,
            not_found_limit=config.not_found_limit,
        )

    @property
    def name(self):
        return self.profile.participant_name.strip() if self.profile.is_identified else None

    def identify(self, name):
        if self.state is AgentState.CLOSED:
            raise RuntimeError("agent is closed")
        if not name or not name.strip():
            raise ValueError("name must not be empty")
        self.profile.participant_name = name.strip()
        if self.state is AgentState.UNIDENTIFIED:
            self.state = AgentState.JOINING

    async def join(self):
        """Register with the counter. Returns True once the agent is active."""
        if self.state is AgentState.ACTIVE:
            return True
        if self.state is not AgentState.JOINING:
            raise RuntimeError(f"cannot join from state {self.state.value}")

        try:
            snapshot = await self.transport.join(self.counter_id, self.name)
        except NotFound as error:
            self._terminate(error.message)
            return False
        except Transient as error:
            self._note_transient(error)
            return False
        except CounterError as error:
            # validation failures end the session
            self.listener.on_error(error)
            self._terminate(error.message)
            return False

        self._note_success()
        self.state = AgentState.ACTIVE
        log.info("agent_joined", counter_id=self.counter_id, participant=self.name)
        self.apply_snapshot(snapshot)
        return True

    def apply_snapshot(self, snapshot: CounterSnapshot):
        """Reconcile one read against the local view. Returns True if accepted."""
        previous = self.snapshot
        if previous is not None and snapshot.version < previous.version:
            self.stats["stale_skips"] += 1
            log.debug(
                "stale_snapshot_skipped",
                counter_id=self.counter_id,
                incoming_version=snapshot.version,
                last_version=previous.version,
            )
            return False

        self.snapshot = snapshot
        self.stats["snapshots_accepted"] += 1

        if previous is None or previous.version != snapshot.version:
            self.listener.on_progress(self._progress(snapshot))

        if previous is not None and not previous.is_completed and snapshot.is_completed:
            self.stats["completions_fired"] += 1
            log.info("completion_observed", counter_id=self.counter_id, version=snapshot.version)
            self.listener.on_completed(snapshot)

        return True

    def _progress(self, snapshot):
        return ProgressUpdate(
            counter_id=snapshot.id,
            current_count=snapshot.current_count,
            goal=snapshot.goal,
            percent=snapshot.progress_percent,
            my_count=snapshot.participant_count(self.name),
            participants=snapshot.leaderboard(),
            is_completed=snapshot.is_completed,
            is_creator=snapshot.created_by == self.name,
            version=snapshot.version,
        )

    def _note_success(self):
        if self._consecutive_transient >= self.transient_error_threshold:
            self.listener.on_notice("RECOVERED", "connection restored")
        self._consecutive_transient = 0
        self._consecutive_not_found = 0

    def _note_transient(self, error):
        self.stats["transient_failures"] += 1
        self._consecutive_transient += 1
        log.debug("transient_failure", counter_id=self.counter_id, error=str(error),
                  consecutive=self._consecutive_transient)
        if self._consecutive_transient == self.transient_error_threshold:
            log.warning("transient_failures_persisting", counter_id=self.counter_id,
                        consecutive=self._consecutive_transient)
            self.listener.on_error(error)

    def _note_not_found(self, error):
        self._consecutive_not_found += 1
        if self._consecutive_not_found >= self.not_found_limit:
            self._terminate(error.message)

    def _terminate(self, reason):
        if self.state is AgentState.CLOSED:
            return
        self.state = AgentState.CLOSED
        self._stop_event.set()
        log.warning("agent_terminated", counter_id=self.counter_id, reason=reason)
        self.listener.on_terminated(reason)

    def _require_active(self):
        if self.state is not AgentState.ACTIVE:
            raise RuntimeError(f"agent is {self.state.value}, not active")

    async def poll_once(self):
        """Fetch the authoritative state once. Returns True if a snapshot was accepted."""
        if self.state is not AgentState.ACTIVE:
            return False
        self.stats["polls"] += 1
        try:
            snapshot = await self.transport.get_state(self.counter_id)
        except NotFound as error:
            self._note_not_found(error)
            return False
        except Transient as error:
            self._note_transient(error)
            return False

        self._note_success()
        return self.apply_snapshot(snapshot)

    async def increment(self):
        """Tap: count one for this participant.

        Returns the increment response, or None when nothing was counted.
        """
        self._require_active()
        if self.snapshot is not None and self.snapshot.is_completed:
            self.listener.on_notice(AlreadyCompleted.code, AlreadyCompleted.default_message)
            return None

        self.listener.on_tap_ack(self.profile.vibration_enabled)

        try:
            result = await self.transport.increment(self.counter_id, self.name)
        except AlreadyCompleted as error:
            self.listener.on_notice(error.code, error.message)
            await self.poll_once()
            return None
        except NotFound as error:
            self._note_not_found(error)
            return None
        except Transient as error:
            self._note_transient(error)
            return None
        except CounterError as error:
            self.listener.on_error(error)
            return None

        self._note_success()
        self.apply_snapshot(result)
        await self.poll_once()
        return result

    async def reset(self):
        """Zero the counter. Only the creator may; others get a Forbidden error event."""
        self._require_active()
        if self.snapshot is None or self.snapshot.created_by != self.name:
            self.listener.on_error(Forbidden())
            return None

        try:
            snapshot = await self.transport.reset(self.counter_id, self.name)
        except NotFound as error:
            self._note_not_found(error)
            return None
        except Transient as error:
            self._note_transient(error)
            return None
        except CounterError as error:
            self.listener.on_error(error)
            return None

        self._note_success()
        self.apply_snapshot(snapshot)
        self.listener.on_notice("RESET", "counter reset")
        return snapshot

    async def run(self):
        """Join, then poll on a fixed interval until stopped or terminated."""
        if self.state is AgentState.UNIDENTIFIED:
            raise RuntimeError("a participant name is required before joining")

        log.info("agent_started", counter_id=self.counter_id, interval=self.poll_interval)
        while not self._stop_event.is_set():
            if self.state is AgentState.JOINING:
                await self.join()
            elif self.state is AgentState.ACTIVE:
                await self.poll_once()
            else:
                break

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        log.info("agent_stopped", counter_id=self.counter_id, state=self.state.value)

    def stop(self):
        self._stop_event.set()
