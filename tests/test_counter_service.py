import pytest

from tasbih.errors import AlreadyCompleted, Forbidden, InvalidGoal, InvalidName, NotFound


def _counts(counter):
    return {name: p.count for name, p in counter.participants.items()}


class TestValidation:
    @pytest.mark.parametrize("goal", [0, -1, True, "10", 2.5, None])
    def test_create_rejects_bad_goal(self, service, goal):
        with pytest.raises(InvalidGoal):
            service.create_counter(goal, "A")

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_create_rejects_empty_creator(self, service, name):
        with pytest.raises(InvalidName):
            service.create_counter(10, name)

    def test_names_are_trimmed(self, service):
        counter = service.create_counter(10, "  Amina ")
        assert counter.created_by == "Amina"

        counter = service.join_counter(counter.id, "Amina")
        assert list(counter.participants) == ["Amina"]

    def test_join_rejects_empty_name(self, service):
        counter = service.create_counter(10, "A")
        with pytest.raises(InvalidName):
            service.join_counter(counter.id, " ")

    def test_join_unknown_counter(self, service):
        with pytest.raises(NotFound):
            service.join_counter("nope", "B")

    def test_join_unknown_counter_wins_over_empty_name(self, service):
        with pytest.raises(NotFound):
            service.join_counter("nope", " ")

    def test_increment_rejects_empty_name(self, service):
        counter = service.create_counter(10, "A")
        with pytest.raises(InvalidName):
            service.increment(counter.id, "")
        assert service.get_state(counter.id).current_count == 0

    def test_get_state_unknown(self, service):
        with pytest.raises(NotFound):
            service.get_state("nope")


class TestScenarios:
    def test_three_taps_complete_goal_of_three(self, service):
        counter = service.create_counter(3, "A")
        service.join_counter(counter.id, "B")

        first = service.increment(counter.id, "A")
        second = service.increment(counter.id, "B")
        third = service.increment(counter.id, "A")

        assert [first.transitioned_now, second.transitioned_now, third.transitioned_now] == [
            False,
            False,
            True,
        ]
        state = service.get_state(counter.id)
        assert state.current_count == 3
        assert state.is_completed is True
        assert _counts(state) == {"A": 2, "B": 1}

    def test_increment_after_completion_leaves_state(self, service):
        counter = service.create_counter(3, "A")
        service.join_counter(counter.id, "B")
        for name in ("A", "B", "A"):
            service.increment(counter.id, name)
        before = service.get_state(counter.id).to_dict()

        with pytest.raises(AlreadyCompleted):
            service.increment(counter.id, "B")

        assert service.get_state(counter.id).to_dict() == before

    def test_join_twice_same_size(self, service):
        counter = service.create_counter(3, "A")
        once = service.join_counter(counter.id, "B")
        twice = service.join_counter(counter.id, "B")
        assert len(once.participants) == len(twice.participants) == 2


class TestReset:
    def test_creator_reset(self, service):
        counter = service.create_counter(2, "A")
        service.increment(counter.id, "B")
        service.increment(counter.id, "A")

        zeroed = service.reset(counter.id, " A ")

        assert zeroed.current_count == 0
        assert zeroed.is_completed is False
        assert _counts(zeroed) == {"A": 0, "B": 0}
        assert zeroed.created_by == "A"

    @pytest.mark.parametrize("name", ["B", "", None, "a"])
    def test_non_creator_reset_is_forbidden(self, service, name):
        counter = service.create_counter(5, "A")
        service.increment(counter.id, "B")
        before = service.get_state(counter.id).to_dict()

        with pytest.raises(Forbidden):
            service.reset(counter.id, name)

        assert service.get_state(counter.id).to_dict() == before
