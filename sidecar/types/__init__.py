from .chain import BlockHeader, ChainEvent, Extrinsic, FinalizedBlock
from .records import (
    AbciEvent,
    BroadcastAck,
    EventAttribute,
    GasInfo,
    OriginRecord,
    ResultRecord,
    SearchResult,
    SimulationResult,
)

__all__ = [
    "BlockHeader",
    "ChainEvent",
    "Extrinsic",
    "FinalizedBlock",
    "AbciEvent",
    "BroadcastAck",
    "EventAttribute",
    "GasInfo",
    "OriginRecord",
    "ResultRecord",
    "SearchResult",
    "SimulationResult",
]
