# /tools/poseidon.py
"""
Poseidon hash over the BN254 scalar field, compatible with circomlib's
`Poseidon(nInputs)` template (x^5 S-box, 8 full rounds, width-dependent
partial rounds).

Round constants and the Cauchy MDS matrix are derived with the Grain LFSR
from the Poseidon reference parameter script, so no constant tables need to
be shipped. Parameters are generated once per width and cached.
"""
from __future__ import annotations

import logging
from collections import deque
from functools import lru_cache
from typing import Iterator, List, Sequence, Tuple

from tools.constants import BN254_SCALAR_FIELD

logger = logging.getLogger(__name__)

P = BN254_SCALAR_FIELD
FIELD_BITS = 254
FULL_ROUNDS = 8
# Partial rounds for t = 2..17, as used by circomlib.
PARTIAL_ROUNDS = [56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68]
MAX_INPUTS = len(PARTIAL_ROUNDS)


class _Grain:
    """Self-shrinking Grain LFSR used by the reference parameter generator."""

    def __init__(self, t: int, partial_rounds: int) -> None:
        init = (
            _to_bits(1, 2)  # prime field
            + _to_bits(0, 4)  # x^alpha S-box
            + _to_bits(FIELD_BITS, 12)
            + _to_bits(t, 12)
            + _to_bits(FULL_ROUNDS, 10)
            + _to_bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state = deque(init, maxlen=80)
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.append(bit)
        return bit

    def bits(self) -> Iterator[int]:
        while True:
            first = self._clock()
            while first == 0:
                self._clock()
                first = self._clock()
            yield self._clock()

    def random_int(self, n: int) -> int:
        stream = self.bits()
        value = 0
        for _ in range(n):
            value = (value << 1) | next(stream)
        return value

    def field_element(self) -> int:
        while True:
            value = self.random_int(FIELD_BITS)
            if value < P:
                return value


def _to_bits(value: int, width: int) -> List[int]:
    return [(value >> (width - 1 - i)) & 1 for i in range(width)]


@lru_cache(maxsize=None)
def parameters(t: int) -> Tuple[Tuple[int, ...], Tuple[Tuple[int, ...], ...]]:
    """(round_constants, mds) for state width `t`."""
    if not 2 <= t <= MAX_INPUTS + 1:
        raise ValueError(f"Unsupported Poseidon width t={t}")
    partial_rounds = PARTIAL_ROUNDS[t - 2]
    grain = _Grain(t, partial_rounds)

    constants = tuple(grain.field_element() for _ in range((FULL_ROUNDS + partial_rounds) * t))

    while True:
        values = [grain.random_int(FIELD_BITS) % P for _ in range(2 * t)]
        if len(set(values)) != 2 * t:
            continue
        xs, ys = values[:t], values[t:]
        if any((x + y) % P == 0 for x in xs for y in ys):
            continue
        break
    mds = tuple(tuple(pow(x + y, P - 2, P) for y in ys) for x in xs)
    logger.debug(f"Generated Poseidon parameters for t={t} ({len(constants)} round constants)")
    return constants, mds


def poseidon(inputs: Sequence[int]) -> int:
    """Hash 1..16 field elements; inputs >= p are rejected."""
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise ValueError(f"Poseidon takes 1..{MAX_INPUTS} inputs, got {len(inputs)}")
    for value in inputs:
        if not 0 <= int(value) < P:
            raise ValueError("Poseidon input is not a BN254 field element")

    t = len(inputs) + 1
    constants, mds = parameters(t)
    partial_rounds = PARTIAL_ROUNDS[t - 2]
    half_full = FULL_ROUNDS // 2
    state = [0] + [int(v) for v in inputs]

    for r in range(FULL_ROUNDS + partial_rounds):
        state = [(s + constants[r * t + i]) % P for i, s in enumerate(state)]
        if r < half_full or r >= half_full + partial_rounds:
            state = [pow(s, 5, P) for s in state]
        else:
            state[0] = pow(state[0], 5, P)
        state = [sum(m * s for m, s in zip(row, state)) % P for row in mds]

    return state[0]
