"""
Native-chain shapes consumed by the resolver and the block follower.

These are deliberately loose: event payloads come straight from the chain's
JSON decoding and are interpreted by `sidecar.chain.events`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class BlockHeader:
    number: int
    hash: str = ""


@dataclass(frozen=True)
class ChainEvent:
    """
    One runtime event.

    `phase` is the raw phase value as decoded by the chain client: either a
    mapping such as ``{"applyExtrinsic": 2}``, its JSON text, or ``"finalization"``
    style markers for events not tied to an extrinsic.
    """

    section: str
    method: str
    data: Sequence[Any] = field(default_factory=tuple)
    phase: Any = None

    @property
    def name(self) -> str:
        return f"{self.section}::{self.method}"


@dataclass(frozen=True)
class Extrinsic:
    index: int
    section: str
    method: str
    args: Any = None

    @property
    def call(self) -> str:
        return f"{self.section}::{self.method}"

    def arg(self, name: str, position: int = 0) -> Optional[Any]:
        """Named argument, falling back to a positional one."""
        if isinstance(self.args, dict):
            return self.args.get(name)
        if isinstance(self.args, (list, tuple)) and len(self.args) > position:
            return self.args[position]
        return None


@dataclass(frozen=True)
class FinalizedBlock:
    header: BlockHeader
    extrinsics: Tuple[Extrinsic, ...] = field(default_factory=tuple)

    @property
    def height(self) -> int:
        return self.header.number

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FinalizedBlock":
        header = d.get("header") or {}
        exts: List[Extrinsic] = []
        for i, x in enumerate(d.get("extrinsics") or []):
            exts.append(
                Extrinsic(
                    index=int(x.get("index", i)),
                    section=str(x["section"]),
                    method=str(x["method"]),
                    args=x.get("args"),
                )
            )
        return FinalizedBlock(
            header=BlockHeader(number=int(header["number"]), hash=str(header.get("hash", ""))),
            extrinsics=tuple(exts),
        )


__all__ = ["BlockHeader", "ChainEvent", "Extrinsic", "FinalizedBlock"]
