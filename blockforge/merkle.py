"""Merkle tree over hashable values, with proofs and verification."""

from __future__ import annotations

import hashlib
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar


class Hashable(Protocol):
    """Behaviour a value needs to be stored in a merkle tree."""

    def hash(self) -> bytes:
        """Return the hash of the value."""

    def equals(self, other: Any) -> bool:
        """Report whether ``other`` holds the same data."""


T = TypeVar("T", bound=Hashable)

HashStrategy = Callable[[], Any]


class Node(Generic[T]):
    """A leaf, intermediate node or root of a merkle tree."""

    def __init__(
        self,
        tree: "Tree[T]",
        hash: bytes,
        value: Optional[T] = None,
        left: Optional["Node[T]"] = None,
        right: Optional["Node[T]"] = None,
        leaf: bool = False,
        dup: bool = False,
    ) -> None:
        self.tree = tree
        self.parent: Optional[Node[T]] = None
        self.left = left
        self.right = right
        self.hash = hash
        self.value = value
        self.leaf = leaf
        self.dup = dup

    def _verify(self) -> bytes:
        """Recompute this node's hash from the leaves below it."""
        if self.leaf:
            return self.value.hash()
        right_bytes = self.right._verify()
        left_bytes = self.left._verify()
        return self.tree._digest(left_bytes + right_bytes)

    def calculate_hash(self) -> bytes:
        """Compute the node's hash from its value or its children's hashes."""
        if self.leaf:
            return self.value.hash()
        return self.tree._digest(self.left.hash + self.right.hash)

    def __str__(self) -> str:
        hash_text = " ".join(str(b) for b in self.hash)
        return f"{str(self.leaf).lower()} {str(self.dup).lower()} [{hash_text}] {self.value}"


class Tree(Generic[T]):
    """A merkle tree built from a sequence of hashable values."""

    def __init__(self, values, hash_strategy: HashStrategy = hashlib.sha256) -> None:
        self._hash_strategy = hash_strategy
        self.root: Optional[Node[T]] = None
        self.leafs: list[Node[T]] = []
        self.merkle_root: bytes = b""
        self.generate(values)

    def _digest(self, data: bytes) -> bytes:
        h = self._hash_strategy()
        h.update(data)
        return h.digest()

    def generate(self, values) -> None:
        """Build the tree from scratch out of ``values``."""
        values = list(values)
        if not values:
            raise ValueError("cannot construct tree with no content")

        leafs = [Node(self, value.hash(), value=value, leaf=True) for value in values]
        if len(leafs) % 2 == 1:
            last = leafs[-1]
            leafs.append(Node(self, last.hash, value=last.value, leaf=True, dup=True))

        root = self._build_intermediate(leafs)
        self.root = root
        self.leafs = leafs
        self.merkle_root = root.hash

    def _build_intermediate(self, level: list[Node[T]]) -> Node[T]:
        while True:
            nodes: list[Node[T]] = []
            for i in range(0, len(level), 2):
                left = level[i]
                right = level[i + 1] if i + 1 < len(level) else left
                node = Node(self, self._digest(left.hash + right.hash), left=left, right=right)
                left.parent = node
                right.parent = node
                if len(level) == 2:
                    return node
                nodes.append(node)
            level = nodes

    def rebuild(self) -> None:
        """Rebuild the tree from the values currently held in its leaves."""
        self.generate([node.value for node in self.leafs])

    def proof(self, data: T) -> tuple[list[bytes], list[int]]:
        """Return the proof hashes for ``data`` and the order to concatenate them.

        An order of 0 means the proof hash comes first, 1 means it comes second.
        """
        for node in self.leafs:
            if not node.value.equals(data):
                continue
            merkle_proof: list[bytes] = []
            order: list[int] = []
            parent = node.parent
            while parent is not None:
                if parent.left.hash == node.hash:
                    merkle_proof.append(parent.right.hash)
                    order.append(1)
                else:
                    merkle_proof.append(parent.left.hash)
                    order.append(0)
                node = parent
                parent = parent.parent
            return merkle_proof, order
        raise ValueError("unable to find data in tree")

    def verify(self) -> None:
        """Recompute every level and check the result against the merkle root."""
        if self.merkle_root != self.root._verify():
            raise ValueError("root hash invalid")

    def verify_data(self, data: T) -> None:
        """Check that ``data`` is in the tree and its path to the root is valid."""
        failure = "merkle root is not equivalent to the merkle root calculated on the critical path"
        for node in self.leafs:
            if not node.value.equals(data):
                continue
            parent = node.parent
            while parent is not None:
                right_bytes = parent.right.calculate_hash()
                left_bytes = parent.left.calculate_hash()
                if self._digest(left_bytes + right_bytes) != parent.hash:
                    raise ValueError(failure)
                parent = parent.parent
            return
        raise ValueError(failure)

    def values(self) -> list[T]:
        """Return the stored values without the padding duplicate, if any."""
        values = [node.value for node in self.leafs]
        if self.leafs[-1].hash == self.leafs[-2].hash:
            return values[:-1]
        return values

    def root_hex(self) -> str:
        """Return the merkle root as a 0x-prefixed hex string."""
        return "0x" + self.merkle_root.hex()

    def __str__(self) -> str:
        return "".join(f"{leaf}\n" for leaf in self.leafs)