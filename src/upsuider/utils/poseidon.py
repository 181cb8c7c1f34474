"""Poseidon hash over the BN254 scalar field.

This is the circom flavour of Poseidon used by Sui zkLogin: an x^5 S-box,
eight full rounds and a width-dependent number of partial rounds. The state is
``[0, *inputs]`` and the digest is the first state element after the
permutation.

Round constants and the Cauchy MDS matrix are derived with the Grain LFSR
procedure of the Poseidon reference implementation (prime field, x^alpha
S-box, 254-bit elements). Parameters are generated lazily per width and cached.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Final

FIELD_MODULUS: Final[int] = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_BITS: Final[int] = 254
FULL_ROUNDS: Final[int] = 8
# Indexed by width - 2, widths 2..17 (1..16 inputs).
PARTIAL_ROUNDS: Final[tuple[int, ...]] = (
    56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68,
)
MAX_DIRECT_INPUTS: Final[int] = len(PARTIAL_ROUNDS)
MAX_INPUTS: Final[int] = 2 * MAX_DIRECT_INPUTS

_GRAIN_STATE_BITS = 80
_GRAIN_WARMUP_CLOCKS = 160


def _to_bits(value: int, width: int) -> list[int]:
    return [int(bit) for bit in format(value, f"0{width}b")]


class GrainLFSR:
    """Self-shrinking Grain LFSR seeded with the Poseidon instance description."""

    def __init__(self, width: int, partial_rounds: int) -> None:
        seed = (
            _to_bits(1, 2)  # prime field
            + _to_bits(0, 4)  # x^alpha S-box
            + _to_bits(FIELD_BITS, 12)
            + _to_bits(width, 12)
            + _to_bits(FULL_ROUNDS, 10)
            + _to_bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state: deque[int] = deque(seed, maxlen=_GRAIN_STATE_BITS)
        for _ in range(_GRAIN_WARMUP_CLOCKS):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        """Return the next output bit; pairs starting with 0 are discarded."""
        bit = self._clock()
        while bit == 0:
            self._clock()
            bit = self._clock()
        return self._clock()

    def next_int(self, bits: int) -> int:
        """Return ``bits`` output bits read most-significant first."""
        value = 0
        for _ in range(bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self) -> int:
        """Return a uniformly sampled field element using rejection sampling."""
        while True:
            value = self.next_int(FIELD_BITS)
            if value < FIELD_MODULUS:
                return value


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width."""

    width: int
    partial_rounds: int
    round_constants: tuple[int, ...]
    mds: tuple[tuple[int, ...], ...]


def _cauchy_matrix(lfsr: GrainLFSR, width: int) -> tuple[tuple[int, ...], ...]:
    while True:
        samples = [lfsr.next_int(FIELD_BITS) % FIELD_MODULUS for _ in range(2 * width)]
        while len(set(samples)) != len(samples):
            samples = [lfsr.next_int(FIELD_BITS) % FIELD_MODULUS for _ in range(2 * width)]
        xs, ys = samples[:width], samples[width:]
        if any((x + y) % FIELD_MODULUS == 0 for x in xs for y in ys):
            continue
        return tuple(
            tuple(pow(x + y, -1, FIELD_MODULUS) for y in ys)
            for x in xs
        )


@lru_cache(maxsize=None)
def params_for_width(width: int) -> PoseidonParams:
    """Generate (once) the Poseidon parameters for a state of ``width`` elements."""
    if not 2 <= width <= MAX_DIRECT_INPUTS + 1:
        raise ValueError(f"Unsupported Poseidon width: {width}")
    partial_rounds = PARTIAL_ROUNDS[width - 2]
    lfsr = GrainLFSR(width, partial_rounds)
    constants = tuple(
        lfsr.next_field_element() for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )
    mds = _cauchy_matrix(lfsr, width)
    return PoseidonParams(
        width=width,
        partial_rounds=partial_rounds,
        round_constants=constants,
        mds=mds,
    )


def permute(state: Sequence[int]) -> list[int]:
    """Apply the Poseidon permutation to a full state vector."""
    params = params_for_width(len(state))
    width = params.width
    half_full = FULL_ROUNDS // 2
    constants = params.round_constants
    current = [value % FIELD_MODULUS for value in state]

    for round_index in range(FULL_ROUNDS + params.partial_rounds):
        offset = round_index * width
        current = [
            (value + constants[offset + i]) % FIELD_MODULUS for i, value in enumerate(current)
        ]
        if round_index < half_full or round_index >= half_full + params.partial_rounds:
            current = [pow(value, 5, FIELD_MODULUS) for value in current]
        else:
            current[0] = pow(current[0], 5, FIELD_MODULUS)
        current = [
            sum(row[j] * current[j] for j in range(width)) % FIELD_MODULUS
            for row in params.mds
        ]
    return current


def poseidon(inputs: Sequence[int]) -> int:
    """Hash between 1 and 16 field elements."""
    if not 1 <= len(inputs) <= MAX_DIRECT_INPUTS:
        raise ValueError(f"Poseidon accepts 1..{MAX_DIRECT_INPUTS} inputs, got {len(inputs)}")
    return permute([0, *inputs])[0]


def poseidon_hash(inputs: Sequence[int | str]) -> int:
    """Hash up to 32 field elements the way zkLogin does.

    Up to 16 inputs are hashed directly; 17..32 inputs are hashed as
    ``poseidon([poseidon(first 16), poseidon(rest)])``.

    Raises:
        ValueError: If an input is outside the field or there are too many inputs.
    """
    values = [int(value) for value in inputs]
    for value in values:
        if value < 0 or value >= FIELD_MODULUS:
            raise ValueError(f"Element {value} not in the BN254 field")
    if not values:
        raise ValueError("Poseidon requires at least one input")
    if len(values) <= MAX_DIRECT_INPUTS:
        return poseidon(values)
    if len(values) <= MAX_INPUTS:
        first = poseidon(values[:MAX_DIRECT_INPUTS])
        second = poseidon(values[MAX_DIRECT_INPUTS:])
        return poseidon([first, second])
    raise ValueError(f"Unable to hash a vector of length {len(values)}")
