"""
Zero-Knowledge Proof Layer for Anonymous DAO Voting
Proof backends (snarkjs Groth16 and a deterministic HMAC stand-in),
the vote prover and Solidity-style calldata formatting
"""

import asyncio
import hashlib
import hmac
import json
import logging
import os
import secrets
import subprocess
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from config.config import ZKConfig

from .circuit import VoteCircuit, build_vote_input
from .exceptions import ProofGenerationError, VerificationError
from .poseidon import SNARK_SCALAR_FIELD

logger = logging.getLogger(__name__)

Scalar = Union[int, str]

# ============================================================================
# PROOF CONTAINERS AND CALLDATA FORMATTING
# ============================================================================


def _to_int(value: Scalar) -> int:
    """Parse a decimal or 0x-prefixed scalar as emitted by snarkjs"""
    if isinstance(value, bool):
        raise ValueError(f"Not a scalar: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text, 10)


@dataclass(frozen=True)
class ProofPoints:
    """Groth16 proof in the (a, b, c) layout of a Solidity verifier"""
    a: Tuple[int, int]
    b: Tuple[Tuple[int, int], Tuple[int, int]]
    c: Tuple[int, int]

    @classmethod
    def from_calldata(cls, a: Sequence[Scalar], b: Sequence[Sequence[Scalar]],
                      c: Sequence[Scalar]) -> 'ProofPoints':
        if len(a) != 2 or len(c) != 2 or len(b) != 2 or any(len(row) != 2 for row in b):
            raise ValueError("Proof must be a[2], b[2][2], c[2]")
        return cls(
            a=(_to_int(a[0]), _to_int(a[1])),
            b=((_to_int(b[0][0]), _to_int(b[0][1])),
               (_to_int(b[1][0]), _to_int(b[1][1]))),
            c=(_to_int(c[0]), _to_int(c[1])),
        )

    @classmethod
    def from_snarkjs(cls, proof: Dict[str, Any]) -> 'ProofPoints':
        """Convert a snarkjs proof object, swapping the G2 coordinate order"""
        pi_a, pi_b, pi_c = proof["pi_a"], proof["pi_b"], proof["pi_c"]
        return cls.from_calldata(
            [pi_a[0], pi_a[1]],
            [[pi_b[0][1], pi_b[0][0]], [pi_b[1][1], pi_b[1][0]]],
            [pi_c[0], pi_c[1]],
        )

    def to_snarkjs(self, protocol: str = "groth16") -> Dict[str, Any]:
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [
                [str(self.b[0][1]), str(self.b[0][0])],
                [str(self.b[1][1]), str(self.b[1][0])],
                ["1", "0"],
            ],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": protocol,
            "curve": "bn128",
        }

    def encode(self) -> bytes:
        flat = [*self.a, *self.b[0], *self.b[1], *self.c]
        return json.dumps([str(v) for v in flat]).encode()


@dataclass(frozen=True)
class VoteCalldata:
    """Ordered scalar tuple consumed by ZKDAO.submit_vote"""
    a: Tuple[int, int]
    b: Tuple[Tuple[int, int], Tuple[int, int]]
    c: Tuple[int, int]
    nullifier_hash: int
    proposal_id: int
    root: int
    vote: int

    def as_args(self) -> Tuple[Any, ...]:
        return (self.a, self.b, self.c, self.nullifier_hash,
                self.proposal_id, self.root, self.vote)


def format_calldata(proof: Dict[str, Any], public_signals: Sequence[Scalar]) -> VoteCalldata:
    """Equivalent of snarkjs exportSolidityCallData for the vote circuit"""
    if len(public_signals) != 4:
        raise ValueError(
            f"Vote circuit has 4 public signals, got {len(public_signals)}")

    points = ProofPoints.from_snarkjs(proof)
    root, nullifier_hash, proposal_id, vote = (_to_int(s) for s in public_signals)

    return VoteCalldata(
        a=points.a,
        b=points.b,
        c=points.c,
        nullifier_hash=nullifier_hash,
        proposal_id=proposal_id,
        root=root,
        vote=vote,
    )


@dataclass
class ProofArtifact:
    """Container for proof and metadata"""
    proof: Dict[str, Any]
    public_signals: List[str]
    circuit_name: str
    generation_time: float
    timestamp: float = field(default_factory=time.time)

    @property
    def root(self) -> int:
        return _to_int(self.public_signals[0])

    @property
    def nullifier_hash(self) -> int:
        return _to_int(self.public_signals[1])

    @property
    def proposal_id(self) -> int:
        return _to_int(self.public_signals[2])

    @property
    def vote(self) -> int:
        return _to_int(self.public_signals[3])

    def calldata(self) -> VoteCalldata:
        return format_calldata(self.proof, self.public_signals)

# ============================================================================
# PROOF BACKENDS
# ============================================================================


class ProofVerifier(Protocol):
    """Verification capability injected into the DAO"""

    def verify(self, proof: ProofPoints, public_signals: Sequence[int]) -> bool:
        ...


class ProofBackend(ProofVerifier, Protocol):
    """Prover and verifier pair for the vote circuit"""

    def prove(self, inputs: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        ...


class HmacProofBackend:
    """
    Deterministic designated-verifier stand-in for Groth16.

    Proving runs the circuit relation and then derives the eight proof
    coordinates as HMAC-SHA256 values over the public signals, so only a
    satisfying witness yields a proof and only the key holder can check it.
    It is not zero-knowledge and is meant for tests and simulations.
    """

    protocol = "hmac-sha256"

    def __init__(self, circuit: VoteCircuit, key: Optional[bytes] = None):
        self.circuit = circuit
        self._key = key if key is not None else secrets.token_bytes(32)

    def _coordinates(self, public_signals: Sequence[int]) -> List[int]:
        message = json.dumps([str(s) for s in public_signals]).encode()
        coords = []
        for i in range(8):
            digest = hmac.new(self._key, message + bytes([i]), hashlib.sha256).digest()
            coords.append(int.from_bytes(digest, 'big') % SNARK_SCALAR_FIELD)
        return coords

    def _proof_for(self, public_signals: Sequence[int]) -> Dict[str, Any]:
        a0, a1, b00, b01, b10, b11, c0, c1 = self._coordinates(public_signals)
        return {
            "pi_a": [str(a0), str(a1), "1"],
            "pi_b": [[str(b00), str(b01)], [str(b10), str(b11)], ["1", "0"]],
            "pi_c": [str(c0), str(c1), "1"],
            "protocol": self.protocol,
            "curve": "bn128",
        }

    def prove(self, inputs: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        witness = self.circuit.calculate_witness(inputs)
        return self._proof_for(witness.public_signals), witness.public_signal_strings()

    def verify(self, proof: ProofPoints, public_signals: Sequence[int]) -> bool:
        if len(public_signals) != 4:
            return False
        expected = ProofPoints.from_snarkjs(
            self._proof_for([int(s) for s in public_signals]))
        return hmac.compare_digest(expected.encode(), proof.encode())


class SnarkjsBackend:
    """Groth16 proving and verification through the snarkjs CLI"""

    def __init__(self, config: ZKConfig):
        self.config = config

    @staticmethod
    def _write_private(path: Path, data: str):
        """Create a file readable only by the current user"""
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'w') as f:
            f.write(data)

    def _run(self, cmd: List[str], error_cls: type) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.config.proof_timeout)
        except FileNotFoundError as e:
            raise error_cls(f"snarkjs not found: {self.config.snarkjs_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(
                f"snarkjs timed out after {self.config.proof_timeout}s") from e

    def prove(self, inputs: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        with tempfile.TemporaryDirectory(prefix="zkvox_prove_") as temp_dir:
            temp_path = Path(temp_dir)
            input_file = temp_path / "input.json"
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"
            self._write_private(input_file, json.dumps(inputs))

            cmd = [
                self.config.snarkjs_bin, 'groth16', 'fullprove',
                str(input_file),
                str(self.config.wasm_file),
                str(self.config.zkey_file),
                str(proof_file),
                str(public_file),
            ]
            result = self._run(cmd, ProofGenerationError)
            if result.returncode != 0:
                raise ProofGenerationError(
                    f"Proof generation failed: {result.stderr.strip() or result.stdout.strip()}")

            proof = json.loads(proof_file.read_text())
            public_signals = [str(s) for s in json.loads(public_file.read_text())]

        return proof, public_signals

    def verify(self, proof: ProofPoints, public_signals: Sequence[int]) -> bool:
        start_time = time.time()
        with tempfile.TemporaryDirectory(prefix="zkvox_verify_") as temp_dir:
            temp_path = Path(temp_dir)
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"
            self._write_private(proof_file, json.dumps(proof.to_snarkjs()))
            self._write_private(public_file, json.dumps([str(s) for s in public_signals]))

            cmd = [
                self.config.snarkjs_bin, 'groth16', 'verify',
                str(self.config.vkey_file),
                str(public_file),
                str(proof_file),
            ]
            result = self._run(cmd, VerificationError)

        is_valid = result.returncode == 0 and "OK!" in result.stdout
        logger.info(
            f"snarkjs verification finished in {time.time() - start_time:.3f}s: "
            f"{'valid' if is_valid else 'invalid'}")
        return is_valid


def build_backend(config: ZKConfig, circuit: VoteCircuit) -> ProofBackend:
    """Select the proof backend named in the configuration"""
    if config.backend == "hmac":
        return HmacProofBackend(circuit)
    if config.backend == "snarkjs":
        return SnarkjsBackend(config)
    raise ValueError(f"Unknown proof backend: {config.backend}")

# ============================================================================
# PROVER
# ============================================================================


@dataclass(frozen=True)
class ProofRequest:
    """One member's vote to prove against a Merkle path"""
    secret: int
    proposal_id: int
    vote: int
    path: Any  # anything exposing path_elements, path_indices and root


class VoteProver:
    """Builds witnesses and proofs; holds no shared mutable state"""

    def __init__(self, circuit: VoteCircuit, backend: ProofBackend, max_concurrent: int = 4):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be positive")
        self.circuit = circuit
        self.backend = backend
        self.max_concurrent = max_concurrent

    def prove(self, secret: int, proposal_id: int, vote: int, path: Any) -> ProofArtifact:
        start_time = time.time()
        try:
            inputs = build_vote_input(
                secret, proposal_id, vote,
                path.path_elements, path.path_indices, path.root,
                hasher=self.circuit.hasher,
            )
        except (TypeError, ValueError) as e:
            raise ProofGenerationError(f"Invalid witness input: {e}") from e

        # Reject unsatisfiable witnesses before handing them to the backend
        self.circuit.calculate_witness(inputs)
        proof, public_signals = self.backend.prove(inputs)

        generation_time = time.time() - start_time
        logger.info(
            f"Generated vote proof for proposal {proposal_id} in {generation_time:.3f}s")

        return ProofArtifact(
            proof=proof,
            public_signals=public_signals,
            circuit_name=self.circuit.name,
            generation_time=generation_time,
        )

    async def prove_many(self, requests: Sequence[ProofRequest]) -> List[ProofArtifact]:
        """Prove independent requests concurrently on a bounded thread pool"""
        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.max_concurrent)

        with ThreadPoolExecutor(max_workers=self.max_concurrent) as executor:
            async def run(request: ProofRequest) -> ProofArtifact:
                async with semaphore:
                    return await loop.run_in_executor(
                        executor, self.prove,
                        request.secret, request.proposal_id, request.vote, request.path)

            return list(await asyncio.gather(*(run(r) for r in requests)))
