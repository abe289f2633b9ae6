"""Proofs for a single C1 challenge: tree D/R inclusion, columns and labels."""

from __future__ import annotations

import mmap
import struct
from collections.abc import Sequence
from typing import Any, Protocol

from sealkit.column_proof import ColumnProof
from sealkit.constants import (
    PARENT_COUNT,
    PARENT_COUNT_BASE,
    PARENT_COUNT_EXP,
    SINGLE_PROOF_DATA,
)
from sealkit.label_proof import LabelProof
from sealkit.sector import SectorParameters
from sealkit.tree_proof import Hasher, TreeDCCProof, TreeProof, _node_at

_U64 = struct.Struct("<Q")
_RAW_BUFFERS = (bytes, bytearray, memoryview, mmap.mmap)

# Stride between the labels of consecutive layers: the node and its parents.
LABEL_STRIDE = PARENT_COUNT + 1


class NodeSource(Protocol):
    def get_nodes(self, nodes: Sequence[tuple[int, int]]) -> list[bytes]: ...


class Challenge:
    """Everything needed to prove one challenged node of a sector."""

    def __init__(
        self,
        params: SectorParameters,
        challenge: int,
        tree_r_root: bytes,
        tree_c_root: bytes,
        tree_d_root: bytes | None,
        hasher: Hasher | None = None,
    ) -> None:
        self.params = params
        self.challenge = challenge
        self.tree_r_root = tree_r_root
        self.tree_c_root = tree_c_root
        self.tree_d_root = tree_d_root
        self.hasher = hasher
        self.drg_parents: tuple[int, ...] = ()
        self.exp_parents: tuple[int, ...] = ()
        self.nodes: list[bytes] | None = None
        self.tree_r_nodes: list[bytes] | None = None

    def get_parents(self, parents: Any) -> None:
        """Pick the base and expander parents of the challenge from the parents graph.

        ``parents`` is either a raw little-endian buffer of 32-bit indices or a
        sequence of integers, ``PARENT_COUNT`` entries per node.
        """
        start = self.challenge * PARENT_COUNT
        if isinstance(parents, _RAW_BUFFERS):
            raw = bytes(parents[start * 4:(start + PARENT_COUNT) * 4])
            if len(raw) != PARENT_COUNT * 4:
                raise IndexError(f"parents of node {self.challenge} are outside the buffer")
            values = struct.unpack(f"<{PARENT_COUNT}I", raw)
        else:
            values = tuple(int(value) for value in parents[start:start + PARENT_COUNT])
            if len(values) != PARENT_COUNT:
                raise IndexError(f"parents of node {self.challenge} are outside the graph")
        self.drg_parents = tuple(values[:PARENT_COUNT_BASE])
        self.exp_parents = tuple(values[PARENT_COUNT_BASE:])

    def _column_nodes(self) -> tuple[int, ...]:
        return (self.challenge, *self.drg_parents, *self.exp_parents)

    def get_nodes(self, reader: NodeSource) -> None:
        """Read the challenged node and its parents on every layer."""
        if len(self.drg_parents) != PARENT_COUNT_BASE:
            raise ValueError("parents must be loaded before nodes")
        pairs = [
            (layer, node)
            for layer in range(self.params.num_layers)
            for node in self._column_nodes()
        ]
        self.nodes = [bytes(node) for node in reader.get_nodes(pairs)]

    def get_tree_r_nodes(self, replica: Any) -> None:
        """Copy the replica labels from which the discarded tree R rows are rebuilt."""
        start = self.challenge & self.params.challenge_start_mask
        self.tree_r_nodes = [
            _node_at(replica, start + k) for k in range(self.params.tree_r_labels)
        ]

    def write_tree_proof(self, tree_r_bufs: Sequence[Any], tree_d_buf: Any = None) -> bytes:
        """Serialize the tree D and tree R inclusion proofs."""
        if self.tree_r_nodes is None:
            raise ValueError("tree R nodes must be loaded before writing the tree proof")
        params = self.params

        tree_d: TreeProof
        if tree_d_buf is None:
            tree_d = TreeDCCProof(params.tree_d_arity, params.tree_d_levels)
            tree_d.gen_inclusion_path(self.challenge)
        else:
            tree_d = TreeProof(params.tree_d_arity, params.tree_d_levels, [tree_d_buf])
            tree_d.root = self.tree_d_root
            tree_d.gen_inclusion_path(self.challenge)
        parts = [tree_d.to_bytes(SINGLE_PROOF_DATA)]

        tree_r = TreeProof(
            params.tree_rc_arity,
            params.tree_rc_levels(),
            tree_r_bufs,
            params.tree_r_discard_rows,
            self.hasher,
        )
        tree_r.root = self.tree_r_root
        tree_r.gen_inclusion_path(self.challenge, self.tree_r_nodes)
        parts.append(tree_r.to_bytes(params.tree_rc_config))
        return b"".join(parts)

    def _column(self, node: int, label_idx: int, tree_c_bufs: Sequence[Any]) -> bytes:
        assert self.nodes is not None
        proof = ColumnProof(
            self.params, node, self.nodes, label_idx, LABEL_STRIDE, tree_c_bufs, self.tree_c_root
        )
        return proof.to_bytes(self.params.tree_rc_config)

    def write_node_proof(self, tree_c_bufs: Sequence[Any]) -> bytes:
        """Serialize the column proofs, labeling proof and encoding proof."""
        if self.nodes is None:
            raise ValueError("nodes must be loaded before writing the node proof")
        parts = [self._column(self.challenge, 0, tree_c_bufs)]

        parts.append(_U64.pack(PARENT_COUNT_BASE))
        parts.extend(
            self._column(parent, k + 1, tree_c_bufs)
            for k, parent in enumerate(self.drg_parents)
        )

        parts.append(_U64.pack(PARENT_COUNT_EXP))
        parts.extend(
            self._column(parent, k + 1 + PARENT_COUNT_BASE, tree_c_bufs)
            for k, parent in enumerate(self.exp_parents)
        )

        labels = LabelProof(self.challenge, self.params.num_layers, self.nodes, LABEL_STRIDE)
        parts.append(labels.to_bytes(False))
        parts.append(labels.to_bytes(True))
        return b"".join(parts)

    def write_proof(
        self, tree_r_bufs: Sequence[Any], tree_c_bufs: Sequence[Any], tree_d_buf: Any = None
    ) -> bytes:
        """Serialize the tree proof followed by the node proof."""
        return self.write_tree_proof(tree_r_bufs, tree_d_buf) + self.write_node_proof(tree_c_bufs)