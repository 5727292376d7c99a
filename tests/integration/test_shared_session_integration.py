import asyncio

from tasbih.client.identity import DeviceProfile
from tasbih.client.sync_agent import ClientSyncAgent, SyncListener
from tasbih.client.transport import LocalCounterTransport
from tasbih.services.counter_service import CounterService
from tasbih.storage import SQLiteCounterStore


class Tally(SyncListener):
    def __init__(self):
        self.completed = 0
        self.notices = []
        self.seen_counts = []

    def on_progress(self, update):
        self.seen_counts.append(update.current_count)

    def on_completed(self, snapshot):
        self.completed += 1

    def on_notice(self, code, message):
        self.notices.append(code)


def test_devices_tapping_together_reach_goal_once(tmp_path):
    store = SQLiteCounterStore(str(tmp_path / "tasbih.db"))
    service = CounterService(store)
    transport = LocalCounterTransport(service)
    goal = 33

    async def scenario():
        created = await transport.create(goal, "A")
        agents = []
        for name in ("A", "B", "C"):
            tally = Tally()
            agent = ClientSyncAgent(
                transport, created.id, DeviceProfile(participant_name=name),
                listener=tally, poll_interval=0.01,
            )
            assert await agent.join()
            agents.append((agent, tally))

        async def tap_until_done(agent):
            responses = []
            while not agent.snapshot.is_completed:
                result = await agent.increment()
                if result is not None:
                    responses.append(result)
            return responses

        per_agent = await asyncio.gather(*(tap_until_done(a) for a, _ in agents))
        for agent, _ in agents:
            await agent.poll_once()
        return created.id, agents, per_agent

    counter_id, agents, per_agent = asyncio.run(scenario())

    all_responses = [r for responses in per_agent for r in responses]
    assert len(all_responses) == goal
    assert sum(r.transitioned_now for r in all_responses) == 1

    final = service.get_state(counter_id)
    assert final.current_count == goal
    assert final.attributed_total() == goal
    assert {p.name for p in final.participants.values()} == {"A", "B", "C"}

    for _, tally in agents:
        assert tally.completed == 1
        # display never went backwards and never passed the goal
        assert tally.seen_counts == sorted(tally.seen_counts)
        assert max(tally.seen_counts) == goal

    store.close()


def test_reset_is_seen_by_every_device(tmp_path):
    store = SQLiteCounterStore(str(tmp_path / "tasbih.db"))
    transport = LocalCounterTransport(CounterService(store))

    async def scenario():
        created = await transport.create(2, "A")
        creator = ClientSyncAgent(transport, created.id, DeviceProfile(participant_name="A"),
                                  listener=Tally())
        tally = Tally()
        guest = ClientSyncAgent(transport, created.id, DeviceProfile(participant_name="B"),
                                listener=tally)
        await creator.join()
        await guest.join()

        await guest.increment()
        await creator.increment()
        await guest.poll_once()

        await creator.reset()
        await guest.poll_once()

        await guest.increment()
        await guest.increment()
        return guest, tally

    guest, tally = asyncio.run(scenario())

    assert guest.snapshot.participant_count("B") == 2
    assert tally.completed == 2
    assert 0 in tally.seen_counts[2:]

    store.close()
