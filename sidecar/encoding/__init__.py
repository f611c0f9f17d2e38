"""
sidecar.encoding
================

Wire-format readers used by the bridge. Re-exports the fee metadata decoder.
"""

from .protobuf import FeeMetadata, decode_tx_fee_metadata, parse_message

__all__ = ["FeeMetadata", "decode_tx_fee_metadata", "parse_message"]
