"""
Sidecar wiring
==============

`Sidecar` builds every service around one store, one chain client and one
observability sink:

    from sidecar import config
    from sidecar.app import Sidecar

    sc = Sidecar.from_config(config.load())
    ack = sc.broadcast.broadcast_tx("ZHVtbXk=")
    sc.search.search_by_hash(ack.txhash)

With a block API URL configured, `from_config` also reads block events from it
and exposes `sc.tail`, which feeds finalized blocks to the resolver:

    sc.tail.poll_once()

Tests pass their own collaborators:

    sc = Sidecar(chain=FakeChain(), store=ResultStore(open_kv("memory://")))
"""

from __future__ import annotations

from typing import Optional

from .chain.blocks import BlockApiClient
from .chain.client import ChainClient, EventsSource, HttpChainClient
from .chain.profiles import ProtocolProfile, get_profile
from .config import SidecarConfig
from .db import open_kv
from .db.result_store import ResultStore
from .logging import LoggingSink, ObservabilitySink
from .services import (BlockFollower, BlockSource, BroadcastPipeline, FinalizedTail,
                       ResultResolver, SearchService, SimulationBridge)


class Sidecar:
    def __init__(
        self,
        *,
        chain: ChainClient,
        store: ResultStore,
        profile: Optional[ProtocolProfile] = None,
        hash_key_source: str = "computed",
        sink: Optional[ObservabilitySink] = None,
        blocks: Optional[BlockSource] = None,
        start_height: Optional[int] = None,
        max_blocks_per_poll: int = 100,
    ) -> None:
        self.chain = chain
        self.blocks = blocks
        self.store = store
        self.profile = profile or get_profile("cosmos")
        self.sink = sink or LoggingSink()

        self.broadcast = BroadcastPipeline(chain, store, hash_key_source=hash_key_source, sink=self.sink)
        self.resolver = ResultResolver(chain, store, self.profile, sink=self.sink)
        self.search = SearchService(store, sink=self.sink)
        self.simulation = SimulationBridge(chain, sink=self.sink)
        self.follower = BlockFollower(self.resolver, sink=self.sink)
        self.tail: Optional[FinalizedTail] = None
        if blocks is not None:
            self.tail = FinalizedTail(
                self.follower,
                blocks,
                store,
                start_height=start_height,
                max_blocks_per_poll=max_blocks_per_poll,
            )

    @classmethod
    def from_config(
        cls,
        cfg: SidecarConfig,
        *,
        sink: Optional[ObservabilitySink] = None,
        events_source: Optional[EventsSource] = None,
    ) -> "Sidecar":
        profile = get_profile(cfg.chain.protocol)
        blocks = None
        if cfg.chain.block_api_url:
            blocks = BlockApiClient(cfg.chain.block_api_url, timeout=cfg.chain.timeout)
            if events_source is None:
                events_source = blocks.events_at
        chain = HttpChainClient(
            cfg.chain.rpc_url,
            profile=profile,
            timeout=cfg.chain.timeout,
            events_source=events_source,
        )
        return cls(
            chain=chain,
            store=ResultStore(open_kv(cfg.db_uri)),
            profile=profile,
            hash_key_source=cfg.hash_key_source,
            sink=sink,
            blocks=blocks,
            start_height=cfg.follower.start_height,
            max_blocks_per_poll=cfg.follower.max_blocks_per_poll,
        )

    def close(self) -> None:
        for part in (self.chain, self.blocks):
            close = getattr(part, "close", None)
            if callable(close):
                close()
        self.store.close()


__all__ = ["Sidecar"]
