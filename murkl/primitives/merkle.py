"""Binary keccak Merkle trees.

Two roles:
- Commitments inside a proof transcript (MerkleTree, verify_merkle_path):
  the leaf is the 32-byte value itself, parents are keccak(left || right),
  and the sibling order at each level follows the index bit.
- The pool's deposit accumulator (MerkleAccumulator): an append-only
  structure that maps each inserted commitment to a new root.
"""

from typing import Protocol

from murkl.primitives.hashing import HASH_SIZE, Hash32, keccak256

# --- Type Aliases ---
MerkleRoot = bytes
SiblingHash = bytes


def hash_pair(left: Hash32, right: Hash32) -> Hash32:
    return keccak256(left, right)


def _check_hash(value: bytes, what: str) -> None:
    if len(value) != HASH_SIZE:
        raise ValueError(f"{what} must be {HASH_SIZE} bytes, got {len(value)}")


# --- Path Verification ---

def compute_root_from_path(leaf: Hash32, path: list[SiblingHash], index: int) -> MerkleRoot:
    """Walk from leaf to root. Siblings are ordered leaf-level first."""
    current = leaf
    for sibling in path:
        if index & 1 == 0:
            current = hash_pair(current, sibling)
        else:
            current = hash_pair(sibling, current)
        index >>= 1
    return current


def verify_merkle_path(leaf: Hash32, path: list[SiblingHash], index: int, root: MerkleRoot) -> bool:
    """Check that leaf sits at index under root.

    The index must fit in the tree implied by the path length; higher bits
    would otherwise be silently ignored.
    """
    if index < 0 or index >> len(path) != 0:
        return False
    if len(leaf) != HASH_SIZE or any(len(s) != HASH_SIZE for s in path):
        return False
    return compute_root_from_path(leaf, path, index) == root


# --- Tree Construction ---

class MerkleTree:
    """Full binary tree over a power-of-two number of 32-byte leaves.

    Levels are stored bottom-up: nodes[0] are the leaves, nodes[-1] == [root].
    """

    def __init__(self, leaves: list[Hash32]):
        n = len(leaves)
        if n == 0 or n & (n - 1) != 0:
            raise ValueError(f"Leaf count must be a power of two, got {n}")
        for i, leaf in enumerate(leaves):
            _check_hash(leaf, f"leaf {i}")

        self.nodes: list[list[Hash32]] = [list(leaves)]
        while len(self.nodes[-1]) > 1:
            level = self.nodes[-1]
            self.nodes.append([hash_pair(level[i], level[i + 1]) for i in range(0, len(level), 2)])

    @property
    def root(self) -> MerkleRoot:
        return self.nodes[-1][0]

    @property
    def depth(self) -> int:
        return len(self.nodes) - 1

    @property
    def n_leaves(self) -> int:
        return len(self.nodes[0])

    def leaf(self, index: int) -> Hash32:
        return self.nodes[0][index]

    def get_path(self, index: int) -> list[SiblingHash]:
        if not 0 <= index < self.n_leaves:
            raise IndexError(f"Leaf index {index} out of range [0, {self.n_leaves})")
        path = []
        for level in self.nodes[:-1]:
            path.append(level[index ^ 1])
            index >>= 1
        return path


# --- Deposit Accumulators ---

class MerkleAccumulator(Protocol):
    """Append-only commitment set that exposes a root after every insertion."""

    @property
    def root(self) -> MerkleRoot: ...

    def insert(self, leaf: Hash32) -> MerkleRoot: ...


class HashChainAccumulator:
    """root' = keccak(root || leaf), starting from the all-zero root."""

    def __init__(self, root: MerkleRoot = bytes(HASH_SIZE)):
        _check_hash(root, "root")
        self._root = root

    @property
    def root(self) -> MerkleRoot:
        return self._root

    def insert(self, leaf: Hash32) -> MerkleRoot:
        _check_hash(leaf, "leaf")
        self._root = keccak256(self._root, leaf)
        return self._root


class IncrementalMerkleTree:
    """Fixed-depth append-only tree that stores one frontier node per level.

    Empty positions hash as zero subtrees: zeros[0] is the all-zero leaf and
    zeros[k + 1] = keccak(zeros[k] || zeros[k]).
    """

    def __init__(self, depth: int = 20):
        if not 1 <= depth <= 32:
            raise ValueError(f"Tree depth must be in [1, 32], got {depth}")
        self.depth = depth
        self.next_index = 0
        self.zeros = [bytes(HASH_SIZE)]
        for _ in range(depth):
            self.zeros.append(hash_pair(self.zeros[-1], self.zeros[-1]))
        self.frontier: list[Hash32] = list(self.zeros[:depth])
        self._root = self.zeros[depth]

    @property
    def root(self) -> MerkleRoot:
        return self._root

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def insert(self, leaf: Hash32) -> MerkleRoot:
        _check_hash(leaf, "leaf")
        if self.next_index >= self.capacity:
            raise ValueError(f"Merkle tree of depth {self.depth} is full")
        index = self.next_index
        current = leaf
        for level in range(self.depth):
            if index & 1 == 0:
                self.frontier[level] = current
                current = hash_pair(current, self.zeros[level])
            else:
                current = hash_pair(self.frontier[level], current)
            index >>= 1
        self.next_index += 1
        self._root = current
        return current
