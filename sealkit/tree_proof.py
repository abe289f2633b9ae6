"""Merkle inclusion paths for tree D, tree R and tree C proofs."""

from __future__ import annotations

import mmap
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sealkit.constants import NODE_SIZE
from sealkit.tree_d_cc import CC_TREE_D_NODE_VALUES, cc_comm_d, cc_node

Hasher = Callable[[bytes], bytes]

_U64 = struct.Struct("<Q")
_U32 = struct.Struct("<I")
_RAW_BUFFERS = (bytes, bytearray, memoryview, mmap.mmap)


def _node_at(buf: Any, index: int) -> bytes:
    """Return node ``index`` of a raw byte buffer or of a sequence of nodes."""
    if index < 0:
        raise IndexError(f"negative node index {index}")
    if isinstance(buf, _RAW_BUFFERS):
        start = index * NODE_SIZE
        node = bytes(buf[start:start + NODE_SIZE])
    else:
        node = bytes(buf[index])
    if len(node) != NODE_SIZE:
        raise IndexError(f"node {index} is outside the buffer")
    return node


def _log2(arity: int) -> int:
    if arity < 2 or arity & (arity - 1):
        raise ValueError(f"arity must be a power of two of at least 2, got {arity}")
    return arity.bit_length() - 1


def tree_paths(challenge: int, arity: int, levels: int) -> list[int]:
    """Position of the challenged node among its siblings on every level."""
    arity_lg = _log2(arity)
    indices = []
    for _ in range(levels):
        indices.append(challenge & (arity - 1))
        challenge >>= arity_lg
    return indices


def tree_proof_size(arity: int, levels: int, proof_type: int) -> int:
    """Serialized size of a tree proof."""
    size = 4 + NODE_SIZE + NODE_SIZE + 8
    size += (NODE_SIZE * (arity - 1) + 8 + 8) * levels
    if proof_type == 1:
        size += 8
    return size


@dataclass(frozen=True)
class PathElement:
    """The siblings of the proven node on one level and its position."""

    arity: int
    index: int
    hashes: tuple[bytes, ...]

    def to_bytes(self) -> bytes:
        count = self.arity - 1
        if len(self.hashes) != count:
            raise ValueError(f"expected {count} sibling hashes, got {len(self.hashes)}")
        parts = [_U64.pack(count)]
        for node in self.hashes:
            if len(node) != NODE_SIZE:
                raise ValueError(f"hashes must be {NODE_SIZE} bytes, got {len(node)}")
            parts.append(bytes(node))
        parts.append(_U64.pack(self.index))
        return b"".join(parts)


class TreeProof:
    """Inclusion proof of one leaf in a tree stored in one or more files.

    Each tree buffer holds the rows of its tree one after the other, leaves
    first. When the lowest rows of a tree were discarded, the labels of the
    challenged group are passed to :meth:`gen_inclusion_path` and the
    missing rows are rebuilt with ``hasher``.
    """

    def __init__(
        self,
        arity: int,
        levels: int,
        tree_bufs: Sequence[Any] = (),
        discard_rows: int = 0,
        hasher: Hasher | None = None,
    ) -> None:
        self.arity_lg = _log2(arity)
        if levels < 1:
            raise ValueError(f"a tree needs at least one level, got {levels}")
        self.arity = arity
        self.levels = levels
        self.tree_bufs = list(tree_bufs)
        self.discard_rows = discard_rows
        self.hasher = hasher
        self.root: bytes | None = None
        self.leaf: bytes | None = None
        self.path: list[PathElement] = []

    def _siblings(self, buf: Any, start: int, skip: int) -> tuple[bytes, ...]:
        return tuple(
            _node_at(buf, start + a) for a in range(self.arity) if a != skip
        )

    def _hash_run(self, buf: Any, start: int) -> bytes:
        assert self.hasher is not None
        return self.hasher(
            b"".join(_node_at(buf, start + i) for i in range(self.arity))
        )

    def _first_levels(self, challenge: int, first_level: Any, indices: list[int]) -> bool:
        if self.hasher is None:
            raise ValueError("rebuilding discarded rows needs a hasher")
        if self.levels < 2:
            raise ValueError("rebuilding discarded rows needs at least two levels")
        arity = self.arity
        labels = arity ** (self.discard_rows + 1)
        leaf_start = (challenge & ~(arity - 1)) & (labels - 1)

        # The first level comes straight from the labels.
        self.leaf = _node_at(first_level, leaf_start + indices[0])
        self.path.append(
            PathElement(arity, indices[0], self._siblings(first_level, leaf_start, indices[0]))
        )

        # The second level hashes runs of adjacent labels.
        leaf_start &= ~(arity * arity - 1)
        hashes = tuple(
            self._hash_run(first_level, leaf_start + a * arity)
            for a in range(arity)
            if a != indices[1]
        )
        self.path.append(PathElement(arity, indices[1], hashes))
        if self.levels == 2:
            return True

        # The third level hashes adjacent labels over two levels.
        leaf_start >>= 2 * self.arity_lg
        outer = []
        for a_o in range(arity):
            if a_o == leaf_start:
                continue
            inner = b"".join(
                self._hash_run(first_level, a_o * arity * arity + a_i * arity)
                for a_i in range(arity)
            )
            outer.append(self.hasher(inner))
        self.path.append(PathElement(arity, indices[2], tuple(outer)))
        return self.levels == 3

    def gen_inclusion_path(self, challenge: int, first_level: Any = None) -> None:
        """Collect the leaf and the sibling hashes of every level."""
        leaves = 1 << (self.levels * self.arity_lg)
        if not 0 <= challenge < leaves:
            raise ValueError(f"challenge {challenge} is outside a tree of {leaves} leaves")
        self.path = []
        indices = tree_paths(challenge, self.arity, self.levels)

        starting_level = 0
        if first_level is not None:
            if self._first_levels(challenge, first_level, indices):
                return
            starting_level = 3

        num_bufs = len(self.tree_bufs)
        if num_bufs == 0:
            raise ValueError("no tree buffers to read the inclusion path from")
        finish_level = self.levels if num_bufs == 1 else self.levels - 1

        arity_mask = ~(self.arity - 1)
        file_leaves = leaves // num_bufs
        file_shift = file_leaves.bit_length() - 1
        tree_idx_mask = file_leaves - 1
        cur_level_size = file_leaves
        if first_level is not None:
            kept = 1 << ((self.levels - (self.discard_rows + 1)) * self.arity_lg)
            cur_level_size = kept // num_bufs

        buf = self.tree_bufs[challenge >> file_shift]
        add_level_size = 0
        for level in range(starting_level, finish_level):
            leaf_idx = indices[level]
            leaf_start = ((challenge & tree_idx_mask) >> (level * self.arity_lg)) & arity_mask
            leaf_start += add_level_size
            add_level_size += cur_level_size
            cur_level_size >>= self.arity_lg
            if level == 0:
                self.leaf = _node_at(buf, leaf_start + leaf_idx)
            self.path.append(
                PathElement(self.arity, leaf_idx, self._siblings(buf, leaf_start, leaf_idx))
            )

        if num_bufs == 1:
            return

        # The top level joins the roots of the separate files.
        leaf_idx = indices[self.levels - 1]
        hashes = tuple(
            _node_at(self.tree_bufs[a], add_level_size)
            for a in range(self.arity)
            if a != leaf_idx
        )
        self.path.append(PathElement(self.arity, leaf_idx, hashes))

    def to_bytes(self, proof_type: int = 0) -> bytes:
        """Serialize as a single tree proof (0) or a base-and-sub proof (1)."""
        if self.root is None or self.leaf is None:
            raise ValueError("root and leaf must be set before serializing")
        if len(self.path) != self.levels:
            raise ValueError("the inclusion path has not been generated")
        head = _U32.pack(proof_type)
        if proof_type == 0:
            return b"".join(
                [head, self.root, self.leaf, _U64.pack(self.levels)]
                + [element.to_bytes() for element in self.path]
            )
        if proof_type == 1:
            base = self.levels - 1
            return b"".join(
                [head, _U64.pack(base)]
                + [element.to_bytes() for element in self.path[:base]]
                + [_U64.pack(1), self.path[base].to_bytes(), self.root, self.leaf]
            )
        raise ValueError(f"unsupported proof type {proof_type}")


class TreeDCCProof(TreeProof):
    """Tree D proof of a committed-capacity sector, whose levels are uniform."""

    def __init__(self, arity: int, levels: int) -> None:
        super().__init__(arity, levels)
        self.root = cc_comm_d(levels)
        self.leaf = cc_node(0)

    def gen_inclusion_path(self, challenge: int, first_level: Any = None) -> None:
        if first_level is None:
            first_level = CC_TREE_D_NODE_VALUES
        self.path = [
            PathElement(self.arity, index, (_node_at(first_level, level),) * (self.arity - 1))
            for level, index in enumerate(tree_paths(challenge, self.arity, self.levels))
        ]