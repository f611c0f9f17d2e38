from .broadcast import BroadcastPipeline
from .follower import BlockFollower, BlockSource, FinalizedTail
from .resolver import ResultResolver
from .search import SearchService, parse_hash_query
from .simulate import SimulationBridge

__all__ = [
    "BroadcastPipeline",
    "BlockFollower",
    "BlockSource",
    "FinalizedTail",
    "ResultResolver",
    "SearchService",
    "SimulationBridge",
    "parse_hash_query",
]
