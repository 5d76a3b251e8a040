"""
Soulbound voter badge: one non-transferable token per successful vote.
Minting requires the single live MintCapability, which only the badge
owner can grant; granting a new one revokes the previous holder.
"""

import logging
import secrets
import threading
from collections import defaultdict
from typing import Dict, List

from .errors import NotAuthorizedError, NotTransferableError

logger = logging.getLogger(__name__)


class MintCapability:
    """Opaque token authorising its holder to mint badges"""

    __slots__ = ("_token",)

    def __init__(self):
        self._token = secrets.token_hex(16)

    def __repr__(self) -> str:
        return f"MintCapability({self._token[:8]}...)"


class SoulboundBadge:
    name = "ZKVox Voter Badge"
    symbol = "ZKVB"

    def __init__(self, owner: str):
        if not owner:
            raise ValueError("Badge owner is required")
        self.owner = owner
        self._capability = None
        self._owners: Dict[int, str] = {}
        self._balances: Dict[str, int] = defaultdict(int)
        self._next_token_id = 0
        self._lock = threading.Lock()

    def grant_minter(self, caller: str) -> MintCapability:
        """Issue a fresh mint capability, revoking any earlier one"""
        if caller != self.owner:
            raise NotAuthorizedError(f"{caller} is not the badge owner")
        with self._lock:
            self._capability = MintCapability()
            logger.info("Badge mint capability (re)granted")
            return self._capability

    def mint(self, capability: MintCapability, beneficiary: str) -> int:
        with self._lock:
            if self._capability is None or capability is not self._capability:
                logger.warning("Rejected badge mint without the current capability")
                raise NotAuthorizedError("Caller does not hold the mint capability")
            if not beneficiary:
                raise ValueError("Badge beneficiary is required")

            token_id = self._next_token_id
            self._next_token_id += 1
            self._owners[token_id] = beneficiary
            self._balances[beneficiary] += 1

        logger.info(f"Minted badge #{token_id} to {beneficiary}")
        return token_id

    def transfer(self, sender: str, recipient: str, token_id: int):
        raise NotTransferableError("Voter badges are soulbound")

    def approve(self, operator: str, token_id: int):
        raise NotTransferableError("Voter badges are soulbound")

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def owner_of(self, token_id: int) -> str:
        try:
            return self._owners[token_id]
        except KeyError:
            raise LookupError(f"Badge #{token_id} does not exist") from None

    def tokens_of(self, holder: str) -> List[int]:
        return sorted(t for t, h in self._owners.items() if h == holder)

    @property
    def total_supply(self) -> int:
        return len(self._owners)
