#!/usr/bin/env python3
"""
Anonymous DAO Voting System
===========================
Wires the membership registry, soulbound badge, DAO, prover and relayer
into one deployment and exposes the member-side workflow:

1. A member derives an identity commitment from a private secret and registers it
2. The member proves membership plus a binary vote against a recent root
3. The proof is submitted directly or through the relayer
4. The DAO spends the nullifier, counts the vote and mints a badge
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config.config import SystemConfig
from dao.badge import SoulboundBadge
from dao.governance import Proposal, VoteReceipt, ZKDAO
from dao.membership import MembershipRegistry
from dao.relayer import Relayer
from utils.utils import PerformanceMonitor
from zk.circuit import VoteCircuit
from zk.poseidon import SNARK_SCALAR_FIELD, poseidon_hash
from zk.zk_proofs import ProofArtifact, ProofBackend, ProofRequest, VoteProver, build_backend

logger = logging.getLogger(__name__)

# ============================================================================
# MEMBER IDENTITY
# ============================================================================


@dataclass(frozen=True)
class MemberIdentity:
    """A member's private secret and its public commitment H(secret)"""
    secret: int
    commitment: int

    @classmethod
    def from_secret(cls, secret: int) -> 'MemberIdentity':
        return cls(secret=secret, commitment=poseidon_hash(secret))

    @classmethod
    def generate(cls) -> 'MemberIdentity':
        return cls.from_secret(secrets.randbelow(SNARK_SCALAR_FIELD))

    def nullifier_for(self, proposal_id: int) -> int:
        """The one-time tag this member reveals when voting on `proposal_id`"""
        return poseidon_hash(self.secret, proposal_id)

    def __repr__(self) -> str:
        return f"MemberIdentity(commitment={self.commitment})"

# ============================================================================
# SYSTEM
# ============================================================================


class AnonymousVotingSystem:
    """Single-process deployment of the anonymous voting protocol"""

    def __init__(self, config: Optional[SystemConfig] = None,
                 backend: Optional[ProofBackend] = None, owner: str = "deployer"):
        self.config = config or SystemConfig()
        protocol = self.config.protocol

        logger.info("Deploying anonymous voting system...")

        self.circuit = VoteCircuit(levels=protocol.tree_depth)
        self.backend = backend or build_backend(self.config.zk_config, self.circuit)

        self.registry = MembershipRegistry(
            depth=protocol.tree_depth,
            root_history_size=protocol.root_history_size,
            zero_value=protocol.zero_value,
        )

        # The DAO is the only holder of the badge mint capability
        self.owner = owner
        self.badge = SoulboundBadge(owner)
        self.dao = ZKDAO(
            verifier=self.backend,
            registry=self.registry,
            badge=self.badge,
            mint_capability=self.badge.grant_minter(owner),
        )

        self.prover = VoteProver(
            self.circuit, self.backend,
            max_concurrent=self.config.zk_config.max_concurrent_proofs)
        self.relayer = Relayer(self.dao)
        self.performance_monitor = PerformanceMonitor()

        logger.info(
            f"System deployed: circuit {self.circuit.name}, "
            f"backend {type(self.backend).__name__}")

    def register_member(self, identity: Optional[MemberIdentity] = None) -> MemberIdentity:
        """Register `identity` (or a freshly generated one) and return it"""
        identity = identity or MemberIdentity.generate()
        with self.performance_monitor.start_operation("register_member"):
            self.dao.register(identity.commitment)
        return identity

    def create_proposal(self, proposal_id: int, title: str, description: str = "",
                        metadata_ref: str = "") -> Proposal:
        return self.dao.create_proposal(proposal_id, title, description, metadata_ref)

    def prove_vote(self, identity: MemberIdentity, proposal_id: int, vote: int) -> ProofArtifact:
        """Prove membership and a vote against the current root"""
        path = self.registry.path(self.registry.index_of(identity.commitment))
        with self.performance_monitor.start_operation("prove_vote"):
            return self.prover.prove(identity.secret, proposal_id, vote, path)

    async def prove_votes(self, ballots: Sequence[Tuple[MemberIdentity, int, int]]) -> List[ProofArtifact]:
        """Prove several (identity, proposal_id, vote) ballots concurrently"""
        requests = [
            ProofRequest(
                secret=identity.secret,
                proposal_id=proposal_id,
                vote=vote,
                path=self.registry.path(self.registry.index_of(identity.commitment)),
            )
            for identity, proposal_id, vote in ballots
        ]
        with self.performance_monitor.start_operation("prove_votes_batch", size=len(requests)):
            return await self.prover.prove_many(requests)

    def cast_vote(self, artifact: ProofArtifact, beneficiary: str,
                  relayed: bool = False) -> VoteReceipt:
        """Submit a proof directly (as `beneficiary`) or through the relayer"""
        with self.performance_monitor.start_operation("submit_vote", relayed=relayed):
            if relayed:
                return self.relayer.relay_artifact(artifact, beneficiary)
            calldata = artifact.calldata()
            return self.dao.submit_vote(
                *calldata.as_args(), beneficiary=beneficiary, submitter=beneficiary)

    def vote(self, identity: MemberIdentity, proposal_id: int, vote: int,
             beneficiary: str, relayed: bool = False) -> VoteReceipt:
        artifact = self.prove_vote(identity, proposal_id, vote)
        return self.cast_vote(artifact, beneficiary, relayed=relayed)

    def proposals(self) -> List[Proposal]:
        return [self.dao.proposal(pid) for pid in self.dao.proposal_ids()]

    def get_system_metrics(self) -> Dict[str, Any]:
        return {
            **self.dao.get_metrics(),
            'tree_depth': self.registry.depth,
            'root_history_size': self.config.protocol.root_history_size,
            'proof_backend': type(self.backend).__name__,
            'relayed_votes': self.relayer.relayed,
            'relayer_rejections': self.relayer.rejected,
        }

