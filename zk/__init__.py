"""
Zero-Knowledge Proof Module for Anonymous DAO Voting
Poseidon hashing, the membership/vote circuit model and Groth16 proof backends
"""

from .circuit import VoteCircuit, Witness, build_vote_input
from .exceptions import (
    ZKError,
    ProofGenerationError,
    ConstraintError,
    VerificationError,
)
from .poseidon import SNARK_SCALAR_FIELD, poseidon_hash
from .zk_proofs import (
    # Core classes
    VoteProver,
    ProofRequest,
    ProofArtifact,
    ProofPoints,
    VoteCalldata,
    format_calldata,

    # Backends
    ProofVerifier,
    ProofBackend,
    HmacProofBackend,
    SnarkjsBackend,
    build_backend,
)

__version__ = "1.0.0"

__all__ = [
    # Hashing and circuit
    'SNARK_SCALAR_FIELD',
    'poseidon_hash',
    'VoteCircuit',
    'Witness',
    'build_vote_input',

    # Classes
    'VoteProver',
    'ProofRequest',
    'ProofArtifact',
    'ProofPoints',
    'VoteCalldata',
    'format_calldata',
    'ProofVerifier',
    'ProofBackend',
    'HmacProofBackend',
    'SnarkjsBackend',
    'build_backend',

    # Exceptions
    'ZKError',
    'ProofGenerationError',
    'ConstraintError',
    'VerificationError',
]
