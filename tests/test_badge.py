import pytest

from dao.badge import SoulboundBadge
from dao.errors import NotAuthorizedError, NotTransferableError


class TestSoulboundBadge:

    def test_metadata(self, badge):
        assert badge.name == "ZKVox Voter Badge"
        assert badge.symbol == "ZKVB"
        assert badge.total_supply == 0

    def test_only_owner_grants_minter(self, badge):
        with pytest.raises(NotAuthorizedError):
            badge.grant_minter("mallory")

    def test_mint_with_capability(self, badge):
        capability = badge.grant_minter("deployer")
        first = badge.mint(capability, "alice")
        second = badge.mint(capability, "alice")

        assert (first, second) == (0, 1)
        assert badge.balance_of("alice") == 2
        assert badge.owner_of(first) == "alice"
        assert badge.tokens_of("alice") == [0, 1]
        assert badge.total_supply == 2

    def test_mint_without_capability(self, badge):
        with pytest.raises(NotAuthorizedError):
            badge.mint(None, "alice")
        assert badge.total_supply == 0

    def test_regrant_revokes_previous_capability(self, badge):
        old = badge.grant_minter("deployer")
        new = badge.grant_minter("deployer")
        with pytest.raises(NotAuthorizedError):
            badge.mint(old, "alice")
        assert badge.mint(new, "alice") == 0

    def test_beneficiary_required(self, badge):
        capability = badge.grant_minter("deployer")
        with pytest.raises(ValueError):
            badge.mint(capability, "")

    def test_badges_are_soulbound(self, badge):
        token_id = badge.mint(badge.grant_minter("deployer"), "alice")
        with pytest.raises(NotTransferableError):
            badge.transfer("alice", "bob", token_id)
        with pytest.raises(NotTransferableError):
            badge.approve("bob", token_id)
        assert badge.owner_of(token_id) == "alice"
        assert badge.balance_of("bob") == 0

    def test_unknown_token(self, badge):
        with pytest.raises(LookupError):
            badge.owner_of(5)

    def test_owner_required(self):
        with pytest.raises(ValueError):
            SoulboundBadge(owner="")
