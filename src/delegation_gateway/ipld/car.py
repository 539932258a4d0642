"""CAR (content-addressed archive) container writer and reader.

Layout (CARv1 with an explicit end marker)::

    varint(len(header)) header            header = DAG-CBOR {"version": 1, "roots": [CID, ...]}
    varint(len(cid) + len(data)) cid data  one section per block, in offered order
    0x00                                   zero-length section: the container is complete

Plain CARv1 ends at EOF, which makes a cut-off stream indistinguishable from
a finished one. The trailing zero-length section lets a reader tell the two
apart; :func:`read_car` raises :class:`TruncatedContainer` when it is missing.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Protocol, Sequence

import dag_cbor
from multiformats import CID, varint

from delegation_gateway.errors import EncodingError, TruncatedContainer, WriteAfterClose
from delegation_gateway.ipld.block import Block

logger = logging.getLogger(__name__)

CAR_VERSION: int = 1
CONTENT_TYPE: str = "application/vnd.ipld.car; version=1"
END_MARKER: bytes = b"\x00"

_MAX_VARINT_BYTES: int = 9


class Sink(Protocol):
    def write(self, data: bytes) -> object: ...


class CarWriter:
    """Incrementally writes a CAR container to *sink*.

    The header is written before the first block (or on close). Use the
    writer as a context manager: a normal exit finalizes the container, an
    exception aborts it without the end marker.

    Parameters
    ----------
    sink:
        Object with a ``write(bytes)`` method.
    roots:
        CIDs of the root blocks.
    """

    def __init__(self, sink: Sink, roots: Sequence[CID]) -> None:
        if not roots:
            raise ValueError("A container needs at least one root.")
        self._sink = sink
        self._roots = list(roots)
        self._header_written = False
        self._closed = False
        self._aborted = False
        self._block_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted

    def write_header(self) -> None:
        """Write the header if it has not been written yet."""
        if self._closed:
            raise WriteAfterClose("Container writer is already closed.")
        if self._header_written:
            return
        header = dag_cbor.encode({"version": CAR_VERSION, "roots": self._roots})
        self._sink.write(varint.encode(len(header)) + header)
        self._header_written = True

    def put(self, block: Block) -> None:
        """Append *block* to the container.

        Raises
        ------
        WriteAfterClose
            If the writer was closed or aborted.
        """
        if self._closed:
            raise WriteAfterClose(f"Cannot write block {block.cid} after the container was closed.")
        self.write_header()
        cid_bytes = bytes(block.cid)
        self._sink.write(varint.encode(len(cid_bytes) + len(block.data)) + cid_bytes + block.data)
        self._block_count += 1

    def close(self) -> None:
        """Write the end marker. Closing twice is a no-op."""
        if self._closed:
            return
        self.write_header()
        self._sink.write(END_MARKER)
        self._closed = True

    def abort(self) -> None:
        """Stop writing without the end marker."""
        if self._closed:
            return
        self._closed = True
        self._aborted = True
        logger.warning("Container aborted after %d block(s)", self._block_count)

    def __enter__(self) -> "CarWriter":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


class _ChunkSink:
    """Collects written bytes until they are drained by :func:`iter_car`."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        self._chunks.append(data)
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def iter_car(roots: Sequence[CID], blocks: Iterable[Block]) -> Iterator[bytes]:
    """Stream a CAR container as byte chunks.

    One chunk is yielded for the header, one per block, and a final chunk
    holding the end marker. Closing the generator early (for example when
    the receiving client disconnects) aborts the writer.
    """
    sink = _ChunkSink()
    with CarWriter(sink, roots) as writer:
        writer.write_header()
        yield sink.drain()
        for block in blocks:
            writer.put(block)
            yield sink.drain()
    yield sink.drain()


def write_car(stream: BinaryIO, roots: Sequence[CID], blocks: Iterable[Block]) -> None:
    """Write a complete CAR container to *stream*."""
    with CarWriter(stream, roots) as writer:
        for block in blocks:
            writer.put(block)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CarContents:
    """Roots and blocks read back from a container."""

    roots: tuple[CID, ...]
    blocks: tuple[Block, ...]

    def get(self, cid: CID) -> Block:
        """Return the block with *cid*.

        Raises
        ------
        KeyError
            If no such block is present.
        """
        wanted = bytes(cid)
        for block in self.blocks:
            if bytes(block.cid) == wanted:
                return block
        raise KeyError(f"Block {cid} not found in container.")


def read_car(source: bytes | BinaryIO) -> CarContents:
    """Read a complete container written by :class:`CarWriter`.

    Raises
    ------
    TruncatedContainer
        If the data ends before the end marker.
    EncodingError
        If the header or a section is malformed, or a block does not match
        its CID.
    """
    stream: BinaryIO = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source

    header_length = _read_varint(stream)
    if header_length is None:
        raise TruncatedContainer("Container is empty.")
    raw_header = _read_exact(stream, header_length)
    try:
        header = dag_cbor.decode(raw_header)
    except Exception as exc:
        raise EncodingError(f"Container header is not valid DAG-CBOR: {exc}") from exc
    if not isinstance(header, dict) or header.get("version") != CAR_VERSION:
        raise EncodingError("Container header is not a version 1 CAR header.")
    roots = header.get("roots")
    if not isinstance(roots, list) or not roots or not all(isinstance(r, CID) for r in roots):
        raise EncodingError("Container header roots must be a non-empty list of CIDs.")

    blocks: list[Block] = []
    while True:
        length = _read_varint(stream)
        if length is None:
            raise TruncatedContainer(f"Container ended after {len(blocks)} block(s) without an end marker.")
        if length == 0:
            break
        blocks.append(_split_section(_read_exact(stream, length)))

    if stream.read(1):
        raise EncodingError("Unexpected data after the container end marker.")
    return CarContents(roots=tuple(roots), blocks=tuple(blocks))


def _read_varint(stream: BinaryIO) -> int | None:
    """Read one unsigned varint; None on a clean EOF before its first byte."""
    buffer = bytearray()
    while True:
        byte = stream.read(1)
        if not byte:
            if not buffer:
                return None
            raise TruncatedContainer("Container ended inside a length prefix.")
        buffer += byte
        if byte[0] < 0x80:
            return varint.decode(bytes(buffer))
        if len(buffer) >= _MAX_VARINT_BYTES:
            raise EncodingError("Length prefix is too long.")


def _read_exact(stream: BinaryIO, length: int) -> bytes:
    data = stream.read(length)
    if len(data) != length:
        raise TruncatedContainer(f"Expected {length} bytes, got {len(data)}.")
    return data


def _split_section(section: bytes) -> Block:
    """Split a section into its CID and data and check the digest."""
    reader = io.BytesIO(section)
    try:
        version = _read_varint(reader)
        if version != 1:
            raise EncodingError(f"Unsupported CID version {version!r} in container.")
        _read_varint(reader)  # codec
        _read_varint(reader)  # multihash function
        digest_length = _read_varint(reader)
        if digest_length is None:
            raise EncodingError("Section ends inside its CID.")
        _read_exact(reader, digest_length)
    except TruncatedContainer as exc:
        raise EncodingError(f"Section ends inside its CID: {exc}") from exc
    boundary = reader.tell()
    block = Block(cid=CID.decode(section[:boundary]), data=section[boundary:])
    if not block.is_valid():
        raise EncodingError(f"Block bytes do not match CID {block.cid}.")
    return block


__all__ = [
    "CAR_VERSION",
    "CONTENT_TYPE",
    "CarContents",
    "CarWriter",
    "END_MARKER",
    "iter_car",
    "read_car",
    "write_car",
]
