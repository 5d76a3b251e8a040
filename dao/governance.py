"""
Proposal & Tally State Machine
==============================
Anonymous one-member-one-vote governance. A vote is accepted only after
the fixed check order

    field guard -> proposal exists -> nullifier unspent -> known root -> proof

so that cheap rejections run before the expensive verifier, and it is
committed (nullifier spent, tally incremented, badge minted) as a single
transition that is either fully applied or not visible at all.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from zk.poseidon import SNARK_SCALAR_FIELD
from zk.zk_proofs import ProofPoints, ProofVerifier

from .badge import MintCapability, SoulboundBadge
from .errors import (
    DoubleVoteError,
    DuplicateProposalError,
    InvalidProofError,
    ProposalNotFoundError,
    UnknownRootError,
)
from .field_guard import check_field_element, check_public_signals
from .membership import MembershipRegistry
from .nullifiers import NullifierLedger

logger = logging.getLogger(__name__)


@dataclass
class Proposal:
    id: int
    title: str
    description: str
    metadata_ref: str
    yes_count: int = 0
    no_count: int = 0
    exists: bool = True
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProposalCreated:
    proposal_id: int
    title: str


@dataclass(frozen=True)
class VoteCast:
    proposal_id: int
    nullifier_hash: int
    vote: int


@dataclass(frozen=True)
class VoteReceipt:
    """Outcome of an accepted vote"""
    proposal_id: int
    nullifier_hash: int
    vote: int
    beneficiary: str
    badge_token_id: int
    submitter: Optional[str]
    timestamp: float


class ZKDAO:
    """Proposal registry and vote tally driven by verified membership proofs"""

    def __init__(self, verifier: ProofVerifier, registry: MembershipRegistry,
                 badge: SoulboundBadge, mint_capability: MintCapability,
                 field_modulus: int = SNARK_SCALAR_FIELD):
        self._verifier = verifier
        self.registry = registry
        self.badge = badge
        self._mint_capability = mint_capability
        self.field_modulus = field_modulus
        self.nullifiers = NullifierLedger()
        self._proposals: Dict[int, Proposal] = {}
        self.events: List[Any] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def register(self, commitment: int) -> int:
        return self.registry.register(commitment)

    def root(self) -> int:
        return self.registry.root()

    def is_known_root(self, root: int) -> bool:
        return self.registry.is_known_root(root)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def create_proposal(self, proposal_id: int, title: str, description: str,
                        metadata_ref: str) -> Proposal:
        proposal_id = check_field_element("proposalId", proposal_id, self.field_modulus)
        with self._lock:
            if proposal_id in self._proposals:
                raise DuplicateProposalError(f"Proposal {proposal_id} already exists")
            proposal = Proposal(
                id=proposal_id,
                title=title,
                description=description,
                metadata_ref=metadata_ref,
            )
            self._proposals[proposal_id] = proposal
            self.events.append(ProposalCreated(proposal_id, title))

        logger.info(f"Proposal {proposal_id} created: {title}")
        return copy.copy(proposal)

    create = create_proposal

    def proposal(self, proposal_id: int) -> Proposal:
        with self._lock:
            if proposal_id not in self._proposals:
                raise ProposalNotFoundError(f"Proposal {proposal_id} does not exist")
            return copy.copy(self._proposals[proposal_id])

    def proposal_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._proposals)

    def tally(self, proposal_id: int) -> Tuple[int, int]:
        proposal = self.proposal(proposal_id)
        return proposal.yes_count, proposal.no_count

    def is_spent(self, nullifier_hash: int) -> bool:
        return self.nullifiers.is_spent(nullifier_hash)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def submit_vote(self, a: Sequence[Any], b: Sequence[Sequence[Any]], c: Sequence[Any],
                    nullifier_hash: Any, proposal_id: Any, root: Any, vote: Any,
                    beneficiary: str, submitter: Optional[str] = None) -> VoteReceipt:
        """Validate an anonymous vote and apply it atomically"""
        with self._lock:
            # (a) every public signal must be a field element
            signals = check_public_signals({
                "nullifierHash": nullifier_hash,
                "proposalId": proposal_id,
                "root": root,
                "vote": vote,
            }, self.field_modulus)
            nullifier_hash = signals["nullifierHash"]
            proposal_id = signals["proposalId"]
            root = signals["root"]
            vote = signals["vote"]

            # (b) proposal must exist
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                raise ProposalNotFoundError(f"Proposal {proposal_id} does not exist")

            # (c) replay check before any verification work
            if self.nullifiers.is_spent(nullifier_hash):
                logger.warning(f"Double vote rejected on proposal {proposal_id}")
                raise DoubleVoteError("Security: Double voting detected")

            # (d) proof must target a recent membership root
            if not self.registry.is_known_root(root):
                logger.warning(f"Unknown root rejected on proposal {proposal_id}")
                raise UnknownRootError(f"Root {root} is not a known membership root")

            # (e) zero-knowledge proof
            try:
                points = ProofPoints.from_calldata(a, b, c)
            except (TypeError, ValueError, IndexError) as e:
                raise InvalidProofError(f"Malformed proof: {e}") from e
            if not self._verifier.verify(points, [root, nullifier_hash, proposal_id, vote]):
                logger.warning(f"Invalid proof rejected on proposal {proposal_id}")
                raise InvalidProofError("Invalid zero-knowledge proof")

            # (f) + (g) commit
            self.nullifiers.spend(nullifier_hash)
            if vote == 1:
                proposal.yes_count += 1
            else:
                proposal.no_count += 1
            try:
                token_id = self.badge.mint(self._mint_capability, beneficiary)
            except Exception:
                if vote == 1:
                    proposal.yes_count -= 1
                else:
                    proposal.no_count -= 1
                self.nullifiers.release(nullifier_hash)
                raise

            self.events.append(VoteCast(proposal_id, nullifier_hash, vote))

        logger.info(
            f"Vote recorded on proposal {proposal_id}: {'yes' if vote == 1 else 'no'}"
            + (f" (relayed by {submitter})" if submitter else ""))

        return VoteReceipt(
            proposal_id=proposal_id,
            nullifier_hash=nullifier_hash,
            vote=vote,
            beneficiary=beneficiary,
            badge_token_id=token_id,
            submitter=submitter,
            timestamp=time.time(),
        )

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'members': self.registry.size,
                'proposals': len(self._proposals),
                'votes_cast': len(self.nullifiers),
                'badges_minted': self.badge.total_supply,
                'known_roots': len(self.registry.known_roots()),
            }
