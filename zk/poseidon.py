"""
Poseidon Hash over the BN254 Scalar Field
Circom-style sponge (capacity element first, output taken from state[0])
with round constants and MDS matrix derived from the Grain LFSR described
in the Poseidon paper (x^5 S-box, 8 full rounds, circomlib partial rounds).
Outputs match circomlib's poseidon for the same inputs.
"""

import logging
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

logger = logging.getLogger(__name__)

# BN254 scalar field prime
SNARK_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BITS = SNARK_SCALAR_FIELD.bit_length()  # 254
ALPHA = 5
FULL_ROUNDS = 8

# Partial rounds per state width t, as used by circomlib for t = 2..6
PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60, 6: 60}

# ============================================================================
# GRAIN LFSR PARAMETER GENERATION
# ============================================================================


def _to_bits(value: int, width: int) -> List[int]:
    return [int(b) for b in bin(value)[2:].zfill(width)]


class GrainLFSR:
    """80-bit Grain LFSR in self-shrinking mode, seeded from the permutation shape"""

    def __init__(self, field_bits: int, width: int, full_rounds: int, partial_rounds: int):
        seed = (
            _to_bits(1, 2)            # prime field
            + _to_bits(0, 4)          # x^alpha S-box
            + _to_bits(field_bits, 12)
            + _to_bits(width, 12)
            + _to_bits(full_rounds, 10)
            + _to_bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state = deque(seed)
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        new_bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.popleft()
        s.append(new_bit)
        return new_bit

    def next_bit(self) -> int:
        """Emit the second bit of a pair only when the first bit is set"""
        while True:
            first = self._clock()
            second = self._clock()
            if first == 1:
                return second

    def next_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, modulus: int, num_bits: int) -> int:
        """Rejection-sample a value below the modulus"""
        while True:
            candidate = self.next_int(num_bits)
            if candidate < modulus:
                return candidate


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width"""
    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]


@lru_cache(maxsize=None)
def poseidon_params(width: int) -> PoseidonParams:
    """Generate (once) the parameters for a state of `width` field elements"""
    if width not in PARTIAL_ROUNDS:
        raise ValueError(
            f"Unsupported Poseidon width {width}; supported: {sorted(PARTIAL_ROUNDS)}")

    partial_rounds = PARTIAL_ROUNDS[width]
    lfsr = GrainLFSR(FIELD_BITS, width, FULL_ROUNDS, partial_rounds)

    num_constants = (FULL_ROUNDS + partial_rounds) * width
    constants = tuple(
        lfsr.next_field_element(SNARK_SCALAR_FIELD, FIELD_BITS)
        for _ in range(num_constants)
    )

    # Cauchy matrix M[i][j] = 1 / (x_i + y_j) with pairwise distinct x, y
    while True:
        samples = [lfsr.next_int(FIELD_BITS) % SNARK_SCALAR_FIELD
                   for _ in range(2 * width)]
        xs, ys = samples[:width], samples[width:]
        sums = [(x + y) % SNARK_SCALAR_FIELD for x in xs for y in ys]
        if len(set(samples)) == 2 * width and 0 not in sums:
            break

    mds = tuple(
        tuple(pow((x + y) % SNARK_SCALAR_FIELD, SNARK_SCALAR_FIELD - 2, SNARK_SCALAR_FIELD)
              for y in ys)
        for x in xs
    )

    logger.debug(
        f"Generated Poseidon parameters for t={width}: {num_constants} round constants")
    return PoseidonParams(width, FULL_ROUNDS, partial_rounds, constants, mds)

# ============================================================================
# PERMUTATION AND HASH
# ============================================================================


def poseidon_permutation(state: List[int], params: PoseidonParams) -> List[int]:
    """Apply the full Poseidon permutation to `state`"""
    p = SNARK_SCALAR_FIELD
    t = params.width
    half_full = params.full_rounds // 2
    total_rounds = params.full_rounds + params.partial_rounds
    constants = params.round_constants

    for r in range(total_rounds):
        offset = r * t
        state = [(state[i] + constants[offset + i]) % p for i in range(t)]

        if r < half_full or r >= half_full + params.partial_rounds:
            state = [pow(x, ALPHA, p) for x in state]
        else:
            state[0] = pow(state[0], ALPHA, p)

        state = [sum(m * x for m, x in zip(row, state)) % p for row in params.mds]

    return state


def poseidon_hash(*inputs: int) -> int:
    """Hash one or more field elements to a single field element"""
    if not inputs:
        raise ValueError("Poseidon requires at least one input")

    for value in inputs:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Poseidon inputs must be integers, got {type(value).__name__}")
        if value < 0 or value >= SNARK_SCALAR_FIELD:
            raise ValueError(f"Value {value} outside field bounds")

    params = poseidon_params(len(inputs) + 1)
    state = [0, *inputs]
    return poseidon_permutation(state, params)[0]
