from .blocks import BlockApiClient
from .client import ChainClient, EventsSource, HttpChainClient, to_chain_event
from .events import Outcome, classify, terminal_events
from .profiles import COSM, COSMOS, ProtocolProfile, get_profile, register_profile

__all__ = [
    "BlockApiClient",
    "ChainClient",
    "EventsSource",
    "HttpChainClient",
    "to_chain_event",
    "Outcome",
    "classify",
    "terminal_events",
    "COSM",
    "COSMOS",
    "ProtocolProfile",
    "get_profile",
    "register_profile",
]
