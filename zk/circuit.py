"""
Membership / Vote Circuit Model
===============================
The arithmetic relation proved off-chain for one anonymous vote:

    commitment            = H(secret)
    current[0]            = commitment
    current[i + 1]        = H(current[i], pathElements[i])   if pathIndices[i] == 0
                          = H(pathElements[i], current[i])   if pathIndices[i] == 1
    current[levels]      === root
    H(secret, proposalId) === nullifierHash
    vote * (vote - 1)     === 0

Public signals are ordered as snarkjs emits them for the vote circuit:
root, nullifierHash, proposalId, vote.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from .exceptions import ConstraintError
from .poseidon import SNARK_SCALAR_FIELD, poseidon_hash

logger = logging.getLogger(__name__)

PUBLIC_SIGNALS = ("root", "nullifierHash", "proposalId", "vote")
PRIVATE_SIGNALS = ("secret", "pathElements", "pathIndices")


@dataclass(frozen=True)
class Witness:
    """Satisfying assignment for the vote circuit"""
    root: int
    nullifier_hash: int
    proposal_id: int
    vote: int
    commitment: int
    path_hashes: Tuple[int, ...]  # current[0..levels]

    @property
    def public_signals(self) -> List[int]:
        return [self.root, self.nullifier_hash, self.proposal_id, self.vote]

    def public_signal_strings(self) -> List[str]:
        """Public signals in the decimal string form snarkjs writes to public.json"""
        return [str(s) for s in self.public_signals]


def build_vote_input(
    secret: int,
    proposal_id: int,
    vote: int,
    path_elements: Sequence[int],
    path_indices: Sequence[int],
    root: int,
    hasher: Callable[..., int] = poseidon_hash,
) -> Dict[str, Any]:
    """Assemble circuit input JSON for a member voting on a proposal"""
    return {
        "root": str(root),
        "nullifierHash": str(hasher(secret, proposal_id)),
        "proposalId": str(proposal_id),
        "vote": str(vote),
        "secret": str(secret),
        "pathElements": [str(e) for e in path_elements],
        "pathIndices": [int(i) for i in path_indices],
    }


class VoteCircuit:
    """Reference witness calculator and constraint checker for the vote circuit"""

    def __init__(self, levels: int = 20, hasher: Callable[..., int] = poseidon_hash,
                 field_modulus: int = SNARK_SCALAR_FIELD):
        if levels < 1:
            raise ValueError("Circuit needs at least one tree level")
        self.levels = levels
        self.hasher = hasher
        self.field_modulus = field_modulus

    @property
    def name(self) -> str:
        return f"vote_{self.levels}"

    def _signal(self, name: str, raw: Any) -> int:
        if isinstance(raw, bool):
            raise ConstraintError(f"{name} is a field element", f"got {raw!r}")
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ConstraintError(f"{name} is a field element", f"got {raw!r}")
        if value < 0 or value >= self.field_modulus:
            raise ConstraintError(f"{name} is a field element", "value outside field")
        return value

    def _array(self, name: str, raw: Any) -> List[int]:
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise ConstraintError(f"{name} is an array of {self.levels} signals")
        if len(raw) != self.levels:
            raise ConstraintError(
                f"{name} is an array of {self.levels} signals", f"got {len(raw)}")
        return [self._signal(f"{name}[{i}]", v) for i, v in enumerate(raw)]

    def calculate_witness(self, inputs: Mapping[str, Any]) -> Witness:
        """Compute every intermediate signal, failing on the first violated constraint"""
        missing = [s for s in PUBLIC_SIGNALS + PRIVATE_SIGNALS if s not in inputs]
        if missing:
            raise ConstraintError("all inputs assigned", f"missing {', '.join(missing)}")

        root = self._signal("root", inputs["root"])
        nullifier_hash = self._signal("nullifierHash", inputs["nullifierHash"])
        proposal_id = self._signal("proposalId", inputs["proposalId"])
        vote = self._signal("vote", inputs["vote"])
        secret = self._signal("secret", inputs["secret"])
        path_elements = self._array("pathElements", inputs["pathElements"])
        path_indices = self._array("pathIndices", inputs["pathIndices"])

        for i, bit in enumerate(path_indices):
            if bit * (bit - 1) != 0:
                raise ConstraintError(f"pathIndices[{i}] * (pathIndices[{i}] - 1) === 0")

        commitment = self.hasher(secret)
        current = [commitment]
        for i in range(self.levels):
            if path_indices[i] == 0:
                current.append(self.hasher(current[i], path_elements[i]))
            else:
                current.append(self.hasher(path_elements[i], current[i]))

        if current[self.levels] != root:
            raise ConstraintError("root === computedRoot", "membership path does not reach root")

        if self.hasher(secret, proposal_id) != nullifier_hash:
            raise ConstraintError("nullifierHash === H(secret, proposalId)")

        if (vote * (vote - 1)) % self.field_modulus != 0:
            raise ConstraintError("vote * (vote - 1) === 0", f"vote = {vote}")

        logger.debug(f"Witness computed for proposal {proposal_id}")
        return Witness(
            root=root,
            nullifier_hash=nullifier_hash,
            proposal_id=proposal_id,
            vote=vote,
            commitment=commitment,
            path_hashes=tuple(current),
        )

    def check_constraints(self, inputs: Mapping[str, Any]) -> bool:
        """True when the inputs satisfy the relation"""
        try:
            self.calculate_witness(inputs)
        except ConstraintError as e:
            logger.debug(f"Constraint check failed: {e}")
            return False
        return True
