"""
Anonymous DAO Governance Module
Membership accumulator, nullifier ledger, proposal tally, soulbound badge and relayer
"""

from .badge import MintCapability, SoulboundBadge
from .errors import (
    DAOError,
    InputOverflowError,
    CapacityExceededError,
    DuplicateProposalError,
    ProposalNotFoundError,
    AlreadySpentError,
    DoubleVoteError,
    UnknownRootError,
    InvalidProofError,
    NotAuthorizedError,
    NotTransferableError,
)
from .field_guard import check_field_element, check_public_signals
from .governance import Proposal, ProposalCreated, VoteCast, VoteReceipt, ZKDAO
from .membership import (
    DEFAULT_TREE_DEPTH,
    ROOT_HISTORY_SIZE,
    IncrementalMerkleTree,
    MemberAdded,
    MembershipRegistry,
    MerklePath,
    RootHistory,
)
from .nullifiers import NullifierLedger
from .relayer import Relayer

__all__ = [
    # Membership
    'DEFAULT_TREE_DEPTH',
    'ROOT_HISTORY_SIZE',
    'IncrementalMerkleTree',
    'MemberAdded',
    'MembershipRegistry',
    'MerklePath',
    'RootHistory',

    # Governance
    'Proposal',
    'ProposalCreated',
    'VoteCast',
    'VoteReceipt',
    'ZKDAO',
    'NullifierLedger',
    'MintCapability',
    'SoulboundBadge',
    'Relayer',
    'check_field_element',
    'check_public_signals',

    # Exceptions
    'DAOError',
    'InputOverflowError',
    'CapacityExceededError',
    'DuplicateProposalError',
    'ProposalNotFoundError',
    'AlreadySpentError',
    'DoubleVoteError',
    'UnknownRootError',
    'InvalidProofError',
    'NotAuthorizedError',
    'NotTransferableError',
]
