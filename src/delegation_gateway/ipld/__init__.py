"""Content addressing and CAR containers for delegation blocks."""
from __future__ import annotations

from delegation_gateway.ipld.block import Block, cid_for, decode, encode
from delegation_gateway.ipld.car import (
    CONTENT_TYPE,
    CarContents,
    CarWriter,
    iter_car,
    read_car,
    write_car,
)

__all__ = [
    "Block",
    "CONTENT_TYPE",
    "CarContents",
    "CarWriter",
    "cid_for",
    "decode",
    "encode",
    "iter_car",
    "read_car",
    "write_car",
]
