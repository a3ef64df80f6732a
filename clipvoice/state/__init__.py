"""Job lifecycle state, stage ordering and keep-alive components."""

from .keepalive import HeartbeatKeepAlive, KeepAlive, NullKeepAlive
from .stages import ProcessingStage
from .store import ProcessingSnapshot, ProcessingStateStore

__all__ = [
    "HeartbeatKeepAlive",
    "KeepAlive",
    "NullKeepAlive",
    "ProcessingSnapshot",
    "ProcessingStage",
    "ProcessingStateStore",
]
