"""
Relayer: submits a member's proof on their behalf so the member's own
account never appears on the ledger. The relayer learns nothing beyond
the public signals it forwards.
"""

import logging
import threading
from typing import Any, Dict, Sequence

from zk.exceptions import ZKError
from zk.zk_proofs import ProofArtifact, format_calldata

from .errors import DAOError, InvalidProofError
from .governance import VoteReceipt, ZKDAO

logger = logging.getLogger(__name__)


class Relayer:
    """Forwards snarkjs-formatted proofs to a ZKDAO"""

    def __init__(self, dao: ZKDAO, address: str = "relayer"):
        self.dao = dao
        self.address = address
        self.relayed = 0
        self.rejected = 0
        self._lock = threading.Lock()

    def relay_vote(self, proof: Dict[str, Any], public_signals: Sequence[Any],
                   beneficiary: str) -> VoteReceipt:
        """Convert `proof`/`public_signals` to calldata and submit it"""
        logger.info(f"[Relayer] Received proof request for {beneficiary}")

        try:
            calldata = format_calldata(proof, public_signals)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._count(accepted=False)
            logger.error(f"[Relayer] Malformed proof payload: {e}")
            raise InvalidProofError(f"Malformed proof payload: {e}") from e

        try:
            receipt = self.dao.submit_vote(
                *calldata.as_args(), beneficiary=beneficiary, submitter=self.address)
        except DAOError as e:
            self._count(accepted=False)
            logger.error(f"[Relayer] Submission rejected ({e.code}): {e}")
            raise
        except ZKError as e:
            self._count(accepted=False)
            logger.error(f"[Relayer] Verifier failure ({type(e).__name__}): {e}")
            raise

        self._count(accepted=True)
        logger.info(
            f"[Relayer] Vote relayed on proposal {receipt.proposal_id}, "
            f"badge #{receipt.badge_token_id} minted to {beneficiary}")
        return receipt

    def relay_artifact(self, artifact: ProofArtifact, beneficiary: str) -> VoteReceipt:
        return self.relay_vote(artifact.proof, artifact.public_signals, beneficiary)

    def _count(self, accepted: bool):
        with self._lock:
            if accepted:
                self.relayed += 1
            else:
                self.rejected += 1
