# /tools/bits.py
"""Big-integer and bit-array helpers for circuit inputs."""
from __future__ import annotations

from typing import List, Sequence


def sha256_pad(data: bytes) -> bytes:
    """
    SHA-256 message padding (FIPS 180-4 §5.1.1), applied by hand because the
    circuits hash pre-padded blocks: 0x80, zeros up to 56 mod 64, then the
    64-bit big-endian bit length.
    """
    bit_length = len(data) * 8
    padded = bytearray(data)
    padded.append(0x80)
    while len(padded) % 64 != 56:
        padded.append(0)
    padded += bit_length.to_bytes(8, "big")
    return bytes(padded)


def bytes_to_bits(data: bytes) -> List[int]:
    """Expand bytes into bits, MSB-first within each byte."""
    return [(byte >> (7 - i)) & 1 for byte in data for i in range(8)]


def bits_to_bytes(bits: Sequence[int]) -> bytes:
    if len(bits) % 8:
        raise ValueError(f"Bit array length {len(bits)} is not a multiple of 8")
    out = bytearray()
    for i in range(0, len(bits), 8):
        byte = 0
        for bit in bits[i:i + 8]:
            byte = (byte << 1) | (bit & 1)
        out.append(byte)
    return bytes(out)


def pad_bits(bits: List[int], size: int) -> List[int]:
    """Zero-pad a bit array at the tail up to `size`."""
    if len(bits) > size:
        raise ValueError(f"Bit array of length {len(bits)} exceeds {size}")
    return bits + [0] * (size - len(bits))


def split_to_chunks(value: int, chunk_bits: int, num_chunks: int) -> List[int]:
    """Split a non-negative integer into little-endian limbs of `chunk_bits` each."""
    if value < 0:
        raise ValueError("Cannot chunk a negative integer")
    if value.bit_length() > chunk_bits * num_chunks:
        raise ValueError(
            f"Integer of {value.bit_length()} bits does not fit {num_chunks} x {chunk_bits}-bit chunks"
        )
    mask = (1 << chunk_bits) - 1
    return [(value >> (chunk_bits * i)) & mask for i in range(num_chunks)]


def reconstruct_from_chunks(chunks: Sequence[int], chunk_bits: int) -> int:
    value = 0
    for i, chunk in enumerate(chunks):
        value |= int(chunk) << (chunk_bits * i)
    return value


def compute_barrett_reduction(modulus: int, chunk_bits: int = 120, num_chunks: int = 18) -> List[int]:
    """
    Barrett reduction parameter floor(2^(2n+4) / m) for an n-bit modulus,
    split into little-endian limbs, as the registration circuit expects it.
    """
    n = modulus.bit_length()
    return split_to_chunks((1 << (2 * n + 4)) // modulus, chunk_bits, num_chunks)
