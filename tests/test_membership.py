import pytest

from dao.errors import CapacityExceededError, InputOverflowError
from dao.membership import (
    IncrementalMerkleTree,
    MemberAdded,
    MembershipRegistry,
    RootHistory,
)
from zk.poseidon import SNARK_SCALAR_FIELD, poseidon_hash

DEPTH = 3


def full_tree_root(leaves, depth, zero_value=0):
    """Reference root computed by hashing the complete, zero-padded tree"""
    level = list(leaves) + [zero_value] * ((1 << depth) - len(leaves))
    for _ in range(depth):
        level = [poseidon_hash(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


class TestIncrementalMerkleTree:

    def test_empty_root_is_zero_subtree(self):
        tree = IncrementalMerkleTree(DEPTH)
        assert tree.root == tree.zeros[DEPTH]
        assert tree.root == full_tree_root([], DEPTH)
        assert len(tree) == 0

    def test_root_matches_full_tree_after_each_insert(self):
        tree = IncrementalMerkleTree(DEPTH)
        leaves = []
        for value in [11, 22, 33, 44, 55]:
            leaves.append(value)
            assert tree.insert(value) == len(leaves) - 1
            assert tree.root == full_tree_root(leaves, DEPTH)

    def test_same_sequence_gives_same_root(self):
        a = IncrementalMerkleTree.from_leaves([1, 2, 3], DEPTH)
        b = IncrementalMerkleTree.from_leaves([1, 2, 3], DEPTH)
        c = IncrementalMerkleTree.from_leaves([2, 1, 3], DEPTH)
        assert a.root == b.root
        assert a.root != c.root

    def test_paths_reconstruct_root(self):
        tree = IncrementalMerkleTree.from_leaves([5, 6, 7, 8, 9], DEPTH)
        for index in range(len(tree)):
            path = tree.path(index)
            assert path.leaf == tree.leaves()[index]
            assert len(path.path_elements) == DEPTH
            assert path.compute_root() == tree.root
            assert path.root == tree.root

    def test_path_indices_encode_position(self):
        tree = IncrementalMerkleTree.from_leaves([1, 2, 3, 4, 5, 6], DEPTH)
        assert tree.path(5).path_indices == (1, 0, 1)
        assert tree.path(0).path_indices == (0, 0, 0)

    def test_path_out_of_range(self):
        tree = IncrementalMerkleTree.from_leaves([1], DEPTH)
        with pytest.raises(IndexError):
            tree.path(1)
        with pytest.raises(IndexError):
            tree.path(-1)

    def test_capacity(self):
        tree = IncrementalMerkleTree(2)
        for value in range(4):
            tree.insert(value + 1)
        root = tree.root
        with pytest.raises(CapacityExceededError):
            tree.insert(99)
        assert tree.root == root
        assert len(tree) == 4

    def test_duplicate_leaves_allowed(self):
        tree = IncrementalMerkleTree.from_leaves([7, 7], DEPTH)
        assert tree.leaves() == [7, 7]
        assert tree.root == full_tree_root([7, 7], DEPTH)

    def test_copy_is_independent(self):
        tree = IncrementalMerkleTree.from_leaves([1, 2], DEPTH)
        clone = tree.copy()
        clone.insert(3)
        assert len(tree) == 2
        assert tree.root == full_tree_root([1, 2], DEPTH)
        assert clone.root == full_tree_root([1, 2, 3], DEPTH)

    def test_custom_zero_value(self):
        tree = IncrementalMerkleTree(DEPTH, zero_value=42)
        tree.insert(1)
        assert tree.root == full_tree_root([1], DEPTH, zero_value=42)

    def test_failed_insert_leaves_tree_unchanged(self):
        tree = IncrementalMerkleTree.from_leaves([1, 2], DEPTH)
        root = tree.root
        with pytest.raises(ValueError):
            tree.insert(SNARK_SCALAR_FIELD)
        assert len(tree) == 2
        assert tree.root == root
        assert tree.leaves() == [1, 2]

        assert tree.insert(5) == 2
        assert tree.root == full_tree_root([1, 2, 5], DEPTH)
        assert tree.path(2).leaf == 5

    def test_hasher_failure_midway_is_not_partially_applied(self):
        calls = {"n": 0, "fail_at": None}

        def flaky(left, right):
            calls["n"] += 1
            if calls["fail_at"] is not None and calls["n"] == calls["fail_at"]:
                raise RuntimeError("hasher unavailable")
            return poseidon_hash(left, right)

        tree = IncrementalMerkleTree(DEPTH, hasher=flaky)
        tree.insert(1)
        root = tree.root
        calls["fail_at"] = calls["n"] + 2
        with pytest.raises(RuntimeError):
            tree.insert(2)
        assert len(tree) == 1
        assert tree.root == root

        calls["fail_at"] = None
        tree.insert(2)
        assert tree.root == full_tree_root([1, 2], DEPTH)

    @pytest.mark.parametrize("depth", [0, 33])
    def test_invalid_depth(self, depth):
        with pytest.raises(ValueError):
            IncrementalMerkleTree(depth)


class TestRootHistory:

    def test_window_evicts_oldest(self):
        history = RootHistory(3)
        for root in [1, 2, 3, 4]:
            history.add(root)
        assert 1 not in history
        assert all(r in history for r in [2, 3, 4])
        assert list(history) == [2, 3, 4]
        assert history.latest == 4

    def test_duplicate_root_not_recorded_twice(self):
        history = RootHistory(3)
        assert history.add(1) is True
        assert history.add(1) is False
        assert len(history) == 1

    def test_empty_history(self):
        history = RootHistory(2)
        assert history.latest is None
        assert 0 not in history

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RootHistory(0)


class TestMembershipRegistry:

    def test_initial_root_is_known(self):
        registry = MembershipRegistry(depth=DEPTH)
        assert registry.is_known_root(registry.root())
        assert registry.size == 0

    def test_register_emits_event_and_updates_root(self):
        registry = MembershipRegistry(depth=DEPTH)
        commitment = poseidon_hash(1337)
        index = registry.register(commitment)

        assert index == 0
        assert registry.root() == full_tree_root([commitment], DEPTH)
        assert registry.events == [MemberAdded(0, commitment, registry.root())]

    def test_every_root_in_window_is_known(self):
        registry = MembershipRegistry(depth=DEPTH, root_history_size=30)
        roots = [registry.root()]
        for value in range(1, 6):
            registry.register(value)
            roots.append(registry.root())
        assert all(registry.is_known_root(r) for r in roots)

    def test_roots_outside_window_are_forgotten(self):
        registry = MembershipRegistry(depth=DEPTH, root_history_size=2)
        initial = registry.root()
        registry.register(1)
        after_first = registry.root()
        registry.register(2)

        assert not registry.is_known_root(initial)
        assert registry.is_known_root(after_first)
        assert registry.is_known_root(registry.root())
        assert len(registry.known_roots()) == 2

    def test_zero_root_never_known(self):
        registry = MembershipRegistry(depth=DEPTH)
        assert not registry.is_known_root(0)

    def test_random_value_not_known(self):
        registry = MembershipRegistry(depth=DEPTH)
        registry.register(1)
        assert not registry.is_known_root(123456789)

    def test_rejects_out_of_field_commitment(self):
        registry = MembershipRegistry(depth=DEPTH)
        with pytest.raises(InputOverflowError) as exc_info:
            registry.register(SNARK_SCALAR_FIELD)
        assert exc_info.value.field == "commitment"
        assert registry.size == 0

    def test_full_registry_raises(self):
        registry = MembershipRegistry(depth=1)
        registry.register(1)
        registry.register(2)
        with pytest.raises(CapacityExceededError):
            registry.register(3)

    def test_index_of(self):
        registry = MembershipRegistry(depth=DEPTH)
        registry.register(10)
        registry.register(20)
        registry.register(10)
        assert registry.index_of(20) == 1
        assert registry.index_of(10) == 0
        with pytest.raises(LookupError):
            registry.index_of(30)

    def test_path_matches_current_root(self):
        registry = MembershipRegistry(depth=DEPTH)
        registry.register(10)
        registry.register(20)
        path = registry.path(1)
        assert path.compute_root() == registry.root()

    def test_snapshot_is_detached(self):
        registry = MembershipRegistry(depth=DEPTH)
        registry.register(10)
        snapshot = registry.snapshot()
        registry.register(20)
        assert len(snapshot) == 1
        assert snapshot.root != registry.root()
