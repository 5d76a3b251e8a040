"""
Protocol error taxonomy. Every error is terminal for the operation that
raised it; `code` is surfaced verbatim to callers and `retryable` marks the
errors a relaying caller may fix by regenerating the proof.
"""


class DAOError(Exception):
    """Base exception for DAO protocol operations"""
    code = "DAOError"
    retryable = False


class InputOverflowError(DAOError):
    """A value is not a member of the proof system's scalar field"""
    code = "Overflow"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Input overflow: {field}")


class CapacityExceededError(DAOError):
    code = "CapacityExceeded"


class DuplicateProposalError(DAOError):
    code = "DuplicateProposal"


class ProposalNotFoundError(DAOError):
    code = "ProposalNotFound"


class AlreadySpentError(DAOError):
    """Raised by the nullifier ledger when a nullifier is spent twice"""
    code = "AlreadySpent"


class DoubleVoteError(DAOError):
    code = "DoubleVote"


class UnknownRootError(DAOError):
    """Root is outside the retained history window; prove again against a fresher root"""
    code = "UnknownRoot"
    retryable = True


class InvalidProofError(DAOError):
    code = "InvalidProof"


class NotAuthorizedError(DAOError):
    code = "NotAuthorized"


class NotTransferableError(DAOError):
    code = "NotTransferable"
