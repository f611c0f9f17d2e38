from __future__ import annotations

"""
Cosmos transaction fee metadata
-------------------------------

Reads the declared gas limit out of a Cosmos `TxRaw` using the generated
cosmos-sdk messages shipped with cosmpy:

    TxRaw.auth_info_bytes → AuthInfo.fee → Fee.gas_limit

Absent fields take protobuf defaults (gas_limit = 0). Bytes that do not parse
raise `DecodeError` naming the message being read.
"""

from dataclasses import dataclass
from typing import Type, TypeVar

from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import AuthInfo, TxRaw
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import Message

from ..errors import DecodeError

M = TypeVar("M", bound=Message)


@dataclass(frozen=True)
class FeeMetadata:
    gas_limit: int = 0


def parse_message(cls: Type[M], data: bytes, field: str) -> M:
    try:
        return cls.FromString(bytes(data))
    except ProtobufDecodeError as e:
        raise DecodeError(f"malformed {cls.__name__}: {e}", field=field).with_cause(e) from e


def decode_tx_fee_metadata(raw_tx: bytes) -> FeeMetadata:
    """Read TxRaw.auth_info_bytes → AuthInfo.fee → Fee.gas_limit."""
    tx = parse_message(TxRaw, raw_tx, "TxRaw")
    auth_info = parse_message(AuthInfo, tx.auth_info_bytes, "TxRaw.auth_info_bytes")
    return FeeMetadata(gas_limit=int(auth_info.fee.gas_limit))


__all__ = ["FeeMetadata", "decode_tx_fee_metadata", "parse_message"]
