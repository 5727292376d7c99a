import structlog

from ..errors import AlreadyCompleted, Forbidden, InvalidGoal, InvalidName

log = structlog.get_logger()


def _clean_name(name):
    if not isinstance(name, str) or not name.strip():
        raise InvalidName()
    return name.strip()


class CounterService:
    """
    Request-level rules on top of a counter store.

    Holds no state of its own: validation, name normalisation, logging and
    response shaping. Atomicity is entirely the store's job.
    """

    def __init__(self, store):
        self.store = store

    def create_counter(self, goal, created_by):
        if isinstance(goal, bool) or not isinstance(goal, int) or goal <= 0:
            raise InvalidGoal()
        created_by = _clean_name(created_by)

        counter_id = self.store.create(goal, created_by)
        counter = self.store.get(counter_id)
        log.info("counter_created", counter_id=counter_id, goal=goal, created_by=created_by)
        return counter

    def join_counter(self, counter_id, participant_name):
        self.store.get(counter_id)
        name = _clean_name(participant_name)
        counter = self.store.add_participant(counter_id, name)
        log.info(
            "participant_joined",
            counter_id=counter_id,
            participant=name,
            participants=len(counter.participants),
        )
        return counter

    def increment(self, counter_id, participant_name):
        name = _clean_name(participant_name)
        try:
            outcome = self.store.atomic_increment(counter_id, name)
        except AlreadyCompleted:
            log.info("increment_rejected", counter_id=counter_id, participant=name,
                     reason="already_completed")
            raise

        log.debug(
            "counter_incremented",
            counter_id=counter_id,
            participant=name,
            current_count=outcome.current_count,
        )
        if outcome.transitioned_now:
            log.info(
                "counter_completed",
                counter_id=counter_id,
                completed_by=name,
                goal=outcome.counter.goal,
            )
        return outcome

    def reset(self, counter_id, requesting_name):
        name = requesting_name.strip() if isinstance(requesting_name, str) else ""
        try:
            counter = self.store.reset(counter_id, name)
        except Forbidden:
            log.warning("reset_forbidden", counter_id=counter_id, requested_by=name)
            raise
        log.info("counter_reset", counter_id=counter_id, requested_by=name, version=counter.version)
        return counter

    def get_state(self, counter_id):
        return self.store.get(counter_id)
