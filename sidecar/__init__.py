"""
Horizon sidecar core.

Bridges Cosmos SDK transaction semantics (broadcast, simulate, search by hash)
onto the native chain's RPC surface and event encoding.

Subpackages
-----------
- sidecar.codec / sidecar.encoding : byte conversions, tx hashing, fee metadata
- sidecar.db                       : KV backends and the hash-indexed ResultStore
- sidecar.chain                    : native client seam, protocol profiles, event classification
- sidecar.services                 : broadcast, resolver, search, simulate, follower
"""

from .version import __version__

__all__ = ["__version__"]
