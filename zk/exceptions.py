"""Exceptions raised by the zero-knowledge tooling."""


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class ProofGenerationError(ZKError):
    """Proof generation failed"""
    pass


class ConstraintError(ProofGenerationError):
    """A witness does not satisfy the circuit relation"""

    def __init__(self, constraint: str, detail: str = ""):
        self.constraint = constraint
        message = f"Assert Failed: {constraint}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class VerificationError(ZKError):
    """The verification backend could not run"""
    pass
