"""
sidecar.codec
=============

Byte-representation helpers shared by every bridge service:

- Encoding conversions between base64, hex (with or without a ``0x`` marker)
  and UTF-8 text: `convert(value, "base64", "hex")` and friends.
- Transaction hashing: `to_hash_hex(raw)` is the lowercase SHA-256 of the raw,
  unprefixed transaction bytes. Store keys always use this lowercase form;
  `display_hash()` uppercases it for Cosmos-facing responses.
- Hash normalization for lookups: `normalize_hash("0xABCD…") == "abcd…"`.
- Module-error decoding: `decode_module_error(payload)` reads the codespace
  (module index) and the error code out of a packed module failure.

Module error ABI
----------------
The native chain packs a module failure as::

    [variant tag][module index][error code][reserved…]
        0             1             2

The layout is a versioned wire contract (`MODULE_ERROR_ABI_V1`). A change on
the chain side is a new layout constant, never an edit of the existing one.

All malformed input raises `sidecar.errors.DecodeError`; callers that deal
with client input translate it into `InputError`.

>>> len(to_hash_hex(b"dummy"))
64
>>> convert("ZHVtbXk=", "base64", "utf8")
'dummy'
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
from dataclasses import dataclass
from typing import Union

from .errors import DecodeError, InputError

BytesLike = Union[bytes, bytearray, memoryview]

ENCODINGS = ("base64", "hex", "utf8")
_ENCODING_ALIASES = {
    "base64": "base64",
    "b64": "base64",
    "hex": "hex",
    "utf8": "utf8",
    "utf-8": "utf8",
}

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


# -----------------------
# Basic bytes/hex helpers
# -----------------------

def strip0x(s: str) -> str:
    """Drop a single leading 0x/0X marker. Idempotent on unprefixed input."""
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_hex(data: BytesLike, *, prefix: bool = False) -> str:
    """Return lowercase hex string of data."""
    h = bytes(data).hex()
    return f"0x{h}" if prefix else h


def from_hex(h: str, *, field: str = "hex") -> bytes:
    """Parse hex with or without 0x. Odd length or non-hex characters raise DecodeError."""
    if not isinstance(h, str):
        raise DecodeError("expected a hex string", field=field, got=type(h).__name__)
    body = strip0x(h.strip())
    if len(body) % 2:
        raise DecodeError("odd-length hex string", field=field, length=len(body))
    if not _HEX_RE.match(body):
        raise DecodeError("invalid hex characters", field=field)
    return bytes.fromhex(body)


def from_base64(s: str, *, field: str = "base64") -> bytes:
    """Strict base64 decode (standard alphabet, padding required)."""
    if not isinstance(s, str):
        raise DecodeError("expected a base64 string", field=field, got=type(s).__name__)
    try:
        return base64.b64decode(s.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64: {e}", field=field) from e


def to_base64(data: BytesLike) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def raw_bytes(value: Union[BytesLike, str], *, field: str = "tx") -> bytes:
    """
    Normalize a transaction payload to raw bytes. Strings are read as hex
    (``0x`` optional), which is how the native chain hands extrinsic args out.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return from_hex(value, field=field)


# ------------------
# Encoding conversion
# ------------------

def _canon_encoding(name: str) -> str:
    enc = _ENCODING_ALIASES.get(str(name).strip().lower())
    if enc is None:
        raise ValueError(f"unsupported encoding {name!r}; expected one of {ENCODINGS}")
    return enc


def decode_as(value: str, encoding: str, *, field: str = "value") -> bytes:
    enc = _canon_encoding(encoding)
    if enc == "base64":
        return from_base64(value, field=field)
    if enc == "hex":
        return from_hex(value, field=field)
    return value.encode("utf-8")


def encode_as(data: BytesLike, encoding: str, *, field: str = "value") -> str:
    enc = _canon_encoding(encoding)
    if enc == "base64":
        return to_base64(data)
    if enc == "hex":
        return to_hex(data)
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError("bytes are not valid UTF-8", field=field) from e


def convert(value: str, from_encoding: str, to_encoding: str, *, field: str = "value") -> str:
    """
    Re-encode `value` from one textual byte encoding to another.

    Hex input may carry a leading ``0x``; hex output never does. For every
    canonical input ``x``: ``convert(convert(x, A, B), B, A) == x``.
    """
    return encode_as(decode_as(value, from_encoding, field=field), to_encoding, field=field)


def base64_to_wire_hex(tx_b64: str, *, field: str = "tx_bytes") -> str:
    """Client base64 → native wire form (``0x``-prefixed lowercase hex)."""
    return to_hex(from_base64(tx_b64, field=field), prefix=True)


def client_tx_bytes(tx_b64: str, *, field: str = "tx_bytes") -> bytes:
    """Decode a client-supplied base64 transaction; bad or empty input is an InputError."""
    try:
        raw = from_base64(tx_b64, field=field)
    except DecodeError as e:
        raise InputError(e.message, field=field).with_cause(e) from e
    if not raw:
        raise InputError("transaction bytes are empty", field=field)
    return raw


# ----------
# Tx hashing
# ----------

def to_hash_hex(raw_tx: BytesLike) -> str:
    """Lowercase hex SHA-256 of the raw (unprefixed) transaction bytes."""
    return hashlib.sha256(bytes(raw_tx)).hexdigest()


def display_hash(hash_hex: str) -> str:
    """Cosmos-facing form of a hash: uppercase, no marker."""
    return strip0x(hash_hex).upper()


def normalize_hash(value: str) -> str:
    """
    Canonical store-key form of a client supplied hash: marker stripped,
    lowercased. Non-hex or empty input raises InputError.
    """
    if not isinstance(value, str):
        raise InputError("hash must be a string", got=type(value).__name__)
    body = strip0x(value.strip())
    if not body or not _HEX_RE.match(body):
        raise InputError("hash must be a non-empty hex string", hash=value)
    return body.lower()


# ---------------------
# Module error decoding
# ---------------------

@dataclass(frozen=True)
class ModuleErrorLayout:
    """Byte offsets of a packed module failure."""

    version: int
    tag_offset: int
    codespace_offset: int
    code_offset: int

    @property
    def min_len(self) -> int:
        return max(self.tag_offset, self.codespace_offset, self.code_offset) + 1


MODULE_ERROR_ABI_V1 = ModuleErrorLayout(version=1, tag_offset=0, codespace_offset=1, code_offset=2)

# Error indices are one byte and 0 is a real module error (its first variant),
# while Cosmos code 0 means success. A failed extrinsic reporting index 0 is
# recorded with this code, outside the one-byte range.
FAILED_ZERO_INDEX_CODE = 0x100


@dataclass(frozen=True)
class ModuleError:
    tag: int
    codespace: int
    code: int


def decode_module_error(
    payload: Union[BytesLike, str], layout: ModuleErrorLayout = MODULE_ERROR_ABI_V1
) -> ModuleError:
    """
    Extract (codespace, code) from a packed module failure.

    >>> decode_module_error(bytes([3, 5, 10, 0, 0, 0]))
    ModuleError(tag=3, codespace=5, code=10)
    """
    data = raw_bytes(payload, field="module_error") if isinstance(payload, str) else bytes(payload)
    if len(data) < layout.min_len:
        raise DecodeError(
            "truncated module error payload",
            field="module_error",
            length=len(data),
            expected_min=layout.min_len,
            abi_version=layout.version,
        )
    return ModuleError(
        tag=data[layout.tag_offset],
        codespace=data[layout.codespace_offset],
        code=data[layout.code_offset],
    )


__all__ = [
    "ENCODINGS",
    "strip0x",
    "to_hex",
    "from_hex",
    "from_base64",
    "to_base64",
    "raw_bytes",
    "decode_as",
    "encode_as",
    "convert",
    "base64_to_wire_hex",
    "client_tx_bytes",
    "to_hash_hex",
    "display_hash",
    "normalize_hash",
    "ModuleErrorLayout",
    "ModuleError",
    "MODULE_ERROR_ABI_V1",
    "FAILED_ZERO_INDEX_CODE",
    "decode_module_error",
]
