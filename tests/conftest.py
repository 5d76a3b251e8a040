"""Shared fixtures: a shallow tree and the HMAC proof backend keep tests fast."""

import pytest

from anonymous_voting_system import AnonymousVotingSystem, MemberIdentity
from config.config import ProtocolConfig, SystemConfig
from dao.badge import SoulboundBadge
from dao.governance import ZKDAO
from dao.membership import MembershipRegistry
from zk.circuit import VoteCircuit
from zk.zk_proofs import HmacProofBackend

TEST_DEPTH = 4
TEST_KEY = b"zkvox-test-key-0123456789abcdef!"


def make_system(tmp_path, depth: int = TEST_DEPTH, root_history_size: int = 30) -> AnonymousVotingSystem:
    config = SystemConfig(
        protocol=ProtocolConfig(tree_depth=depth, root_history_size=root_history_size),
        log_dir=tmp_path / "logs",
        results_dir=tmp_path / "results",
    )
    circuit = VoteCircuit(levels=depth)
    return AnonymousVotingSystem(config, backend=HmacProofBackend(circuit, key=TEST_KEY))


@pytest.fixture
def circuit():
    return VoteCircuit(levels=TEST_DEPTH)


@pytest.fixture
def backend(circuit):
    return HmacProofBackend(circuit, key=TEST_KEY)


@pytest.fixture
def registry():
    return MembershipRegistry(depth=TEST_DEPTH)


@pytest.fixture
def badge():
    return SoulboundBadge(owner="deployer")


@pytest.fixture
def dao(backend, registry, badge):
    return ZKDAO(backend, registry, badge, badge.grant_minter("deployer"))


@pytest.fixture
def system(tmp_path):
    return make_system(tmp_path)


@pytest.fixture
def alice():
    return MemberIdentity.from_secret(1337)


@pytest.fixture
def bob():
    return MemberIdentity.from_secret(12345)


@pytest.fixture
def election(system, alice, bob):
    """System with two members and proposal 1 open"""
    system.register_member(alice)
    system.register_member(bob)
    system.create_proposal(1, "Fund audit", "Pay for an external audit", "ipfs://audit")
    return system
