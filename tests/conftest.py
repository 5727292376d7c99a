import pytest

from tasbih.services.counter_service import CounterService
from tasbih.storage import MemoryCounterStore, SQLiteCounterStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryCounterStore()
    else:
        s = SQLiteCounterStore(str(tmp_path / "tasbih.db"))
    yield s
    s.close()


@pytest.fixture
def service(store):
    return CounterService(store)
