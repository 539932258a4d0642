"""Content addressing for delegations.

A :class:`Block` pairs encoded bytes with their CID: CIDv1, ``dag-cbor``
codec, ``sha2-256`` multihash. The CID is a pure function of the bytes, so
re-encoding the same delegation anywhere yields the same identifier.
"""
from __future__ import annotations

from dataclasses import dataclass

import dag_cbor
from multiformats import CID, multihash

from delegation_gateway.delegation.token import Delegation
from delegation_gateway.errors import EncodingError

CODEC: str = "dag-cbor"
HASH_FUNCTION: str = "sha2-256"


@dataclass(frozen=True)
class Block:
    """An immutable content-addressed block.

    Parameters
    ----------
    cid:
        Content identifier derived from ``data``.
    data:
        The encoded block bytes.
    """

    cid: CID
    data: bytes

    def is_valid(self) -> bool:
        """Return True if ``cid`` matches a fresh digest of ``data``."""
        return multihash.digest(self.data, self.cid.hashfun.name) == bytes(self.cid.digest)


def cid_for(data: bytes, codec: str = CODEC) -> CID:
    """Compute the CIDv1 of *data* under *codec* with a sha2-256 digest."""
    return CID("base32", 1, codec, multihash.digest(data, HASH_FUNCTION))


def encode(delegation: Delegation) -> Block:
    """Encode *delegation* as a DAG-CBOR block.

    Raises
    ------
    EncodingError
        If the delegation can not be represented in DAG-CBOR.
    """
    try:
        data = dag_cbor.encode(delegation.to_ipld())
    except Exception as exc:
        raise EncodingError(f"Could not encode delegation: {exc}") from exc
    return Block(cid=cid_for(data), data=data)


def decode(block: Block) -> Delegation:
    """Decode a delegation block, checking its CID first.

    Raises
    ------
    EncodingError
        If the CID does not match the bytes, the codec is not DAG-CBOR, or
        the decoded value is not a delegation.
    """
    if block.cid.codec.name != CODEC:
        raise EncodingError(f"Unexpected block codec {block.cid.codec.name!r}.")
    if not block.is_valid():
        raise EncodingError(f"Block bytes do not match CID {block.cid}.")
    try:
        node = dag_cbor.decode(block.data)
    except Exception as exc:
        raise EncodingError(f"Could not decode block {block.cid}: {exc}") from exc
    if not isinstance(node, dict):
        raise EncodingError(f"Block {block.cid} does not hold a delegation.")
    return Delegation.from_ipld(node)


__all__ = ["Block", "CODEC", "HASH_FUNCTION", "cid_for", "decode", "encode"]
