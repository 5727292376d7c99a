from .identity import DeviceProfile, ProfileStore
from .sync_agent import AgentState, ClientSyncAgent, ProgressUpdate, SyncListener
from .transport import HttpCounterTransport, LocalCounterTransport

__all__ = [
    "AgentState",
    "ClientSyncAgent",
    "DeviceProfile",
    "HttpCounterTransport",
    "LocalCounterTransport",
    "ProfileStore",
    "ProgressUpdate",
    "SyncListener",
]
