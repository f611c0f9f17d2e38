from __future__ import annotations

"""
gateway.deps
============
Wires the HTTP layer to a running `sidecar.app.Sidecar`:

- `attach_sidecar(app, sc)` stores a ready-made Sidecar on `app.state`
- `lifespan_for(cfg)` builds one from config on startup and closes it on shutdown;
  when the follower is enabled it also runs `follow_finalized` as a background
  task for the app's lifetime
- `get_sidecar(request)` is the FastAPI dependency used by handlers

Typical usage
-------------
from fastapi import Depends, FastAPI
from gateway.deps import get_sidecar, lifespan_for

app = FastAPI(lifespan=lifespan_for(cfg))

@app.get("/thing")
def thing(sc: Sidecar = Depends(get_sidecar)): ...
"""

import asyncio
import contextlib
import logging
import typing as t

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from sidecar.app import Sidecar
from sidecar.config import SidecarConfig
from sidecar.errors import ChainUnavailable, SidecarError
from sidecar.services import FinalizedTail
from sidecar.logging import LoggingSink, MultiSink

from .metrics import PrometheusSink

log = logging.getLogger("sidecar.gateway.deps")


def default_sink(metrics_enabled: bool = True):
    if metrics_enabled:
        return MultiSink(LoggingSink(), PrometheusSink())
    return LoggingSink()


def attach_sidecar(app: FastAPI, sc: Sidecar) -> None:
    app.state.sidecar = sc


async def follow_finalized(tail: FinalizedTail, interval: float) -> None:
    """
    Poll the finalized head until cancelled. Sleeps `interval` seconds unless
    the last poll filled a whole batch; a failed poll is logged and retried.
    """
    while True:
        try:
            done = await run_in_threadpool(tail.poll_once)
        except SidecarError as e:
            log.warning(
                "follower poll failed",
                extra={"code": e.to_dict()["code"], "error": e.message},
            )
            done = 0
        await asyncio.sleep(0 if done >= tail.max_blocks_per_poll else interval)


def lifespan_for(cfg: SidecarConfig):
    """
    Lifespan that builds the Sidecar from `cfg` unless one was attached already.
    Only a Sidecar built here is closed on shutdown.
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> t.AsyncIterator[None]:
        built = False
        if getattr(app.state, "sidecar", None) is None:
            log.info(
                "gateway starting",
                extra={
                    "chain_id": cfg.chain.chain_id,
                    "protocol": cfg.chain.protocol,
                    "db": cfg.db_uri,
                    "host": cfg.gateway.host,
                    "port": cfg.gateway.port,
                },
            )
            attach_sidecar(
                app, Sidecar.from_config(cfg, sink=default_sink(cfg.gateway.metrics_enabled))
            )
            built = True
        task: t.Optional[asyncio.Task] = None
        tail = getattr(app.state.sidecar, "tail", None)
        if cfg.follower.enabled and tail is not None:
            task = asyncio.create_task(
                follow_finalized(tail, cfg.follower.interval), name="sidecar-follower"
            )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            if built:
                log.info("gateway stopping")
                app.state.sidecar.close()
                app.state.sidecar = None

    return lifespan


def get_sidecar(request: Request) -> Sidecar:
    sc = getattr(request.app.state, "sidecar", None)
    if sc is None:
        raise ChainUnavailable("sidecar not initialized")
    return sc


__all__ = ["attach_sidecar", "default_sink", "follow_finalized", "get_sidecar", "lifespan_for"]
