# /tools/der.py
"""
Minimal DER header reader.

asn1crypto does the heavy ASN.1 lifting elsewhere; this module covers the few
places where we need raw offsets: the EF.SOD wrapper, the [0] IMPLICIT
signedAttrs inside a SignerInfo, and counting SET OF members without decoding
them.
"""
from __future__ import annotations

from typing import Iterator, List, NamedTuple, Optional, Tuple

from tools.errors import DERParseError


class DerHeader(NamedTuple):
    tag: int
    length: int
    header_length: int

    @property
    def total_length(self) -> int:
        return self.header_length + self.length


def read_tag(buffer: bytes, offset: int = 0) -> DerHeader:
    """
    Read the tag and length at `offset`.

    Supports short-form lengths (< 0x80), long-form lengths (0x8N followed by
    N big-endian bytes) and high-tag-number tags such as DG1's 0x5F1F, which
    are returned as one integer built from all tag bytes.
    """
    n = len(buffer)
    if offset < 0 or offset + 2 > n:
        raise DERParseError(f"DER header at offset {offset} runs past end of buffer ({n} bytes)")

    pos = offset
    tag = buffer[pos]
    pos += 1
    if tag & 0x1F == 0x1F:
        while True:
            if pos >= n:
                raise DERParseError(f"Truncated high-tag-number tag at offset {offset}")
            b = buffer[pos]
            tag = (tag << 8) | b
            pos += 1
            if not b & 0x80:
                break

    if pos >= n:
        raise DERParseError(f"Missing length byte at offset {pos}")
    first = buffer[pos]
    pos += 1
    if first < 0x80:
        length = first
    else:
        num_bytes = first & 0x7F
        if num_bytes == 0:
            raise DERParseError(f"Indefinite length is not valid DER (offset {offset})")
        if pos + num_bytes > n:
            raise DERParseError(f"Long-form length at offset {offset} runs past end of buffer")
        length = int.from_bytes(buffer[pos:pos + num_bytes], "big")
        pos += num_bytes

    header = DerHeader(tag=tag, length=length, header_length=pos - offset)
    if offset + header.total_length > n:
        raise DERParseError(
            f"Element at offset {offset} declares {length} bytes but only {n - pos} remain"
        )
    return header


def element_value(buffer: bytes, offset: int = 0) -> bytes:
    """Return the value bytes of the element at `offset`."""
    header = read_tag(buffer, offset)
    start = offset + header.header_length
    return bytes(buffer[start:start + header.length])


def element_bytes(buffer: bytes, offset: int = 0) -> bytes:
    """Return header + value of the element at `offset`."""
    header = read_tag(buffer, offset)
    return bytes(buffer[offset:offset + header.total_length])


def iter_elements(buffer: bytes, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[int, DerHeader]]:
    """Yield (offset, header) for each sibling element in buffer[start:end]."""
    end = len(buffer) if end is None else end
    pos = start
    while pos < end:
        header = read_tag(buffer, pos)
        if pos + header.total_length > end:
            raise DERParseError(f"Element at offset {pos} overruns its parent")
        yield pos, header
        pos += header.total_length


def children(buffer: bytes, offset: int = 0) -> List[bytes]:
    """Full encodings of the direct children of the constructed element at `offset`."""
    header = read_tag(buffer, offset)
    start = offset + header.header_length
    return [
        bytes(buffer[pos:pos + h.total_length])
        for pos, h in iter_elements(buffer, start, start + header.length)
    ]


def strip_icao_wrapper(data: bytes, tag: int) -> bytes:
    """Remove an ICAO EF application tag (e.g. 0x77 for EF.SOD) if present."""
    if data and data[0] == tag:
        return element_value(data, 0)
    return bytes(data)


def decode_oid(value: bytes) -> str:
    """Decode the value bytes of an OBJECT IDENTIFIER into dotted form."""
    if not value:
        raise DERParseError("Empty OBJECT IDENTIFIER")
    first = value[0]
    arcs = [min(first // 40, 2), first - 40 * min(first // 40, 2)]
    acc = 0
    for b in value[1:]:
        acc = (acc << 7) | (b & 0x7F)
        if not b & 0x80:
            arcs.append(acc)
            acc = 0
    if value[-1] & 0x80:
        raise DERParseError("Truncated OBJECT IDENTIFIER")
    return ".".join(str(a) for a in arcs)
