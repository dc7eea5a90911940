# /tools/calldata.py
"""
Vote and transaction encoders for the passport voting contract.

Everything is ABI-encoded with eth-abi; the function selector is derived from
the signature with keccak256 rather than hardcoded.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from eth_abi import encode

from tools.constants import EXECUTE_SIGNATURE, MAX_VOTE_OPTIONS
from tools.merkle import keccak256

ProofPointsTuple = Tuple[Tuple[int, int], Tuple[Tuple[int, int], Tuple[int, int]], Tuple[int, int]]
UINT256_LIMIT = 1 << 256


def encode_vote_bitmasks(selected_options: Iterable[int], total_options: int) -> List[int]:
    """One uint256 with bit i set for every selected option i. No selection -> [0]."""
    selected = list(selected_options)
    if not selected:
        return [0]
    if not 0 < total_options <= MAX_VOTE_OPTIONS:
        raise ValueError(f"total_options must be in 1..{MAX_VOTE_OPTIONS}, got {total_options}")
    mask = 0
    for option in selected:
        if not 0 <= option < total_options:
            raise ValueError(f"Option {option} out of range for {total_options} options")
        mask |= 1 << option
    return [mask]


def is_multichoice(multichoice_mask: int, question_index: int) -> bool:
    return bool((multichoice_mask >> question_index) & 1)


def encode_date_as_ascii_bytes(year: int, month: int, day: int) -> int:
    """YYMMDD as ASCII, read as a big-endian integer (2026-02-23 -> 0x323630323233)."""
    text = f"{year % 100:02d}{month:02d}{day:02d}"
    return int.from_bytes(text.encode("ascii"), "big")


def encode_citizenship(country_code: str) -> int:
    """ICAO alpha-3 code as a big-endian ASCII integer ("IRN" -> 0x49524E)."""
    if len(country_code) != 3 or not country_code.isalpha():
        raise ValueError(f"Expected a 3-letter country code, got {country_code!r}")
    return int.from_bytes(country_code.upper().encode("ascii"), "big")


def encode_user_payload(
    proposal_id: int,
    votes: Sequence[int],
    nullifier: int,
    citizenship: int,
    identity_creation_timestamp: int,
) -> bytes:
    """abi.encode(uint256, uint256[], (uint256 nullifier, uint256 citizenship, uint256 timestamp))."""
    for name, value in (
        ("proposal_id", proposal_id),
        ("nullifier", nullifier),
        ("identity_creation_timestamp", identity_creation_timestamp),
    ):
        if not 0 <= value < UINT256_LIMIT:
            raise ValueError(f"{name} does not fit uint256: {value}")
    return encode(
        ["uint256", "uint256[]", "(uint256,uint256,uint256)"],
        [proposal_id, list(votes), (nullifier, citizenship, identity_creation_timestamp)],
    )


def function_selector(signature: str) -> bytes:
    return keccak256(signature.encode("ascii"))[:4]


def encode_execute_calldata(
    registration_root: bytes,
    current_date: int,
    user_payload: bytes,
    proof_points: ProofPointsTuple,
) -> bytes:
    """Calldata for execute(bytes32,uint256,bytes,(uint256[2],uint256[2][2],uint256[2]))."""
    if len(registration_root) != 32:
        raise ValueError("registration_root must be 32 bytes")
    a, b, c = proof_points
    args = encode(
        ["bytes32", "uint256", "bytes", "(uint256[2],uint256[2][2],uint256[2])"],
        [registration_root, current_date, user_payload, (list(a), [list(b[0]), list(b[1])], list(c))],
    )
    return function_selector(EXECUTE_SIGNATURE) + args
