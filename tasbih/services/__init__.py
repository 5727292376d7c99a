from .counter_service import CounterService
from .api import CounterApi

__all__ = ["CounterService", "CounterApi"]
