"""
Membership Accumulator
======================
Append-only, fixed-depth Poseidon Merkle tree over identity commitments,
plus the bounded window of recent roots that proofs may be generated against.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from zk.poseidon import SNARK_SCALAR_FIELD, poseidon_hash

from .errors import CapacityExceededError
from .field_guard import check_field_element

logger = logging.getLogger(__name__)

DEFAULT_TREE_DEPTH = 20
ROOT_HISTORY_SIZE = 30
MAX_TREE_DEPTH = 32


@dataclass(frozen=True)
class MerklePath:
    """Inclusion path for one leaf, in circuit input order (leaf level first)"""
    leaf_index: int
    leaf: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    root: int

    def compute_root(self, hasher: Callable[..., int] = poseidon_hash) -> int:
        current = self.leaf
        for sibling, bit in zip(self.path_elements, self.path_indices):
            current = hasher(current, sibling) if bit == 0 else hasher(sibling, current)
        return current


@dataclass(frozen=True)
class MemberAdded:
    index: int
    commitment: int
    root: int


class IncrementalMerkleTree:
    """
    Sparse incremental Merkle tree stored level by level.

    `_levels[l][p]` holds the node at level `l`, position `p` for every
    position that has at least one inserted leaf below it; everything to the
    right is the precomputed zero subtree of that level. An insertion only
    rewrites the `depth` nodes on its own path.
    """

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH,
                 hasher: Callable[..., int] = poseidon_hash, zero_value: int = 0):
        if depth < 1 or depth > MAX_TREE_DEPTH:
            raise ValueError(f"Tree depth must be between 1 and {MAX_TREE_DEPTH}")

        self.depth = depth
        self.capacity = 1 << depth
        self.hasher = hasher

        zeros = [zero_value]
        for _ in range(depth):
            zeros.append(hasher(zeros[-1], zeros[-1]))
        self.zeros: Tuple[int, ...] = tuple(zeros)

        self._levels: List[List[int]] = [[] for _ in range(depth)]
        self._root = self.zeros[depth]

    @classmethod
    def from_leaves(cls, leaves: Sequence[int], depth: int = DEFAULT_TREE_DEPTH,
                    hasher: Callable[..., int] = poseidon_hash,
                    zero_value: int = 0) -> 'IncrementalMerkleTree':
        tree = cls(depth, hasher, zero_value)
        for leaf in leaves:
            tree.insert(leaf)
        return tree

    @property
    def root(self) -> int:
        return self._root

    @property
    def next_index(self) -> int:
        return len(self._levels[0])

    def __len__(self) -> int:
        return self.next_index

    def leaves(self) -> List[int]:
        return list(self._levels[0])

    def _node(self, level: int, position: int) -> int:
        nodes = self._levels[level]
        return nodes[position] if position < len(nodes) else self.zeros[level]

    def insert(self, leaf: int) -> int:
        """Append a leaf and return its index"""
        index = self.next_index
        if index >= self.capacity:
            raise CapacityExceededError(
                f"Merkle tree is full ({self.capacity} leaves at depth {self.depth})")

        # Hash the whole path before touching stored nodes so a failing hasher
        # leaves the tree unchanged
        updates = []
        node = leaf
        position = index
        for level in range(self.depth):
            updates.append((level, position, node))
            if position % 2 == 0:
                left, right = node, self._node(level, position + 1)
            else:
                left, right = self._levels[level][position - 1], node

            node = self.hasher(left, right)
            position //= 2

        for level, position, value in updates:
            nodes = self._levels[level]
            if position == len(nodes):
                nodes.append(value)
            else:
                nodes[position] = value
        self._root = node
        return index

    def path(self, index: int) -> MerklePath:
        """Sibling values and direction bits from leaf `index` up to the root"""
        if index < 0 or index >= self.next_index:
            raise IndexError(f"Leaf index {index} out of range (size {self.next_index})")

        elements = []
        indices = []
        position = index
        for level in range(self.depth):
            elements.append(self._node(level, position ^ 1))
            indices.append(position & 1)
            position //= 2

        return MerklePath(
            leaf_index=index,
            leaf=self._levels[0][index],
            path_elements=tuple(elements),
            path_indices=tuple(indices),
            root=self._root,
        )

    def copy(self) -> 'IncrementalMerkleTree':
        clone = IncrementalMerkleTree.__new__(IncrementalMerkleTree)
        clone.depth = self.depth
        clone.capacity = self.capacity
        clone.hasher = self.hasher
        clone.zeros = self.zeros
        clone._levels = [list(nodes) for nodes in self._levels]
        clone._root = self._root
        return clone


class RootHistory:
    """Ring buffer of the last `capacity` distinct roots with O(1) lookups"""

    def __init__(self, capacity: int = ROOT_HISTORY_SIZE):
        if capacity < 1:
            raise ValueError("Root history must hold at least one root")
        self.capacity = capacity
        self._ring: deque = deque(maxlen=capacity)
        self._known = set()

    def add(self, root: int) -> bool:
        """Record a root; returns False if it is already in the window"""
        if root in self._known:
            return False
        if len(self._ring) == self.capacity:
            self._known.discard(self._ring[0])
        self._ring.append(root)
        self._known.add(root)
        return True

    @property
    def latest(self) -> Optional[int]:
        return self._ring[-1] if self._ring else None

    def __contains__(self, root: object) -> bool:
        return root in self._known

    def __len__(self) -> int:
        return len(self._ring)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._ring))


class MembershipRegistry:
    """On-ledger membership set: the accumulator plus its root history"""

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH,
                 root_history_size: int = ROOT_HISTORY_SIZE,
                 hasher: Callable[..., int] = poseidon_hash, zero_value: int = 0,
                 field_modulus: int = SNARK_SCALAR_FIELD):
        self._tree = IncrementalMerkleTree(depth, hasher, zero_value)
        self._history = RootHistory(root_history_size)
        self._history.add(self._tree.root)
        self.field_modulus = field_modulus
        self.events: List[MemberAdded] = []
        self._lock = threading.RLock()

        logger.info(
            f"Membership registry ready: depth {depth}, root history {root_history_size}")

    @property
    def depth(self) -> int:
        return self._tree.depth

    @property
    def size(self) -> int:
        return self._tree.next_index

    def register(self, commitment: int) -> int:
        """Insert an identity commitment and return its leaf index"""
        commitment = check_field_element("commitment", commitment, self.field_modulus)
        with self._lock:
            index = self._tree.insert(commitment)
            root = self._tree.root
            self._history.add(root)
            self.events.append(MemberAdded(index, commitment, root))

        logger.info(f"Member added at index {index}")
        return index

    def root(self) -> int:
        return self._tree.root

    def is_known_root(self, root: int) -> bool:
        if root == 0:
            return False
        with self._lock:
            return root in self._history

    def known_roots(self) -> List[int]:
        with self._lock:
            return list(self._history)

    def path(self, index: int) -> MerklePath:
        with self._lock:
            return self._tree.path(index)

    def index_of(self, commitment: int) -> int:
        """Lowest leaf index holding `commitment`"""
        with self._lock:
            try:
                return self._tree.leaves().index(commitment)
            except ValueError:
                raise LookupError(f"Commitment {commitment} is not registered") from None

    def snapshot(self) -> IncrementalMerkleTree:
        """Independent copy of the tree for off-line witness generation"""
        with self._lock:
            return self._tree.copy()
